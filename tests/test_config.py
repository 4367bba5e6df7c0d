from pathlib import Path

import pytest

from tabconvert.config_loader import MB, ConfigLoader, ConverterSettings, load_settings

REPO_CONFIG = Path(__file__).resolve().parent.parent / 'config' / 'converter.yaml'


def test_defaults_without_a_file():
    settings = load_settings()
    assert settings.limits.max_input_bytes == 50 * MB
    assert settings.limits.max_rows is None
    assert settings.streaming.chunk_size == 1000
    assert settings.streaming.threshold_bytes == 10 * MB
    assert settings.cache.enabled
    assert settings.cache.max_age_seconds == 300.0
    assert settings.logging.level == 'INFO'


def test_repository_config_matches_defaults():
    assert load_settings(REPO_CONFIG) == ConverterSettings.default()


def test_partial_file(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("limits:\n  max_rows: 5\ncache:\n  enabled: false\n")
    settings = load_settings(path)
    assert settings.limits.max_rows == 5
    assert settings.limits.max_columns is None
    assert not settings.cache.enabled
    assert settings.streaming.chunk_size == 1000


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("limits:\n  bogus: 1\nextra_section:\n  a: 1\n")
    assert load_settings(path) == ConverterSettings.default()


def test_empty_file(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("")
    assert load_settings(path) == ConverterSettings.default()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / 'nope.yaml')


def test_loader_caches_until_cleared(tmp_path):
    (tmp_path / 'converter.yaml').write_text("streaming:\n  chunk_size: 10\n")
    loader = ConfigLoader(tmp_path)
    assert loader.load_settings().streaming.chunk_size == 10

    (tmp_path / 'converter.yaml').write_text("streaming:\n  chunk_size: 20\n")
    assert loader.load_settings().streaming.chunk_size == 10

    loader.clear_cache()
    assert loader.load_settings().streaming.chunk_size == 20
