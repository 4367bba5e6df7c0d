import datetime
import io
import logging

import openpyxl
import pytest

from tabconvert.config_loader import ConverterSettings


SAMPLE_CSV = "name,age,city\nAlice,30,Paris\nBob,25,\"New York, NY\"\nCarol,41,Berlin"

SAMPLE_JSON = """[
  {"id": 1, "name": "Alice", "active": true, "address": {"city": "Paris", "zip": "75001"}},
  {"id": 2, "name": "Bob", "active": false, "tags": ["a", "b"]}
]"""

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<people>
  <person id="1">
    <name>Alice</name>
    <age>30</age>
  </person>
  <person id="2">
    <name>Bob</name>
    <age>25</age>
  </person>
</people>"""


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


@pytest.fixture
def sample_json():
    return SAMPLE_JSON


@pytest.fixture
def sample_xml():
    return SAMPLE_XML


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return ConverterSettings.default()


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path


@pytest.fixture
def xlsx_bytes():
    """Two-sheet workbook: Data (with a blank row) and Other."""
    workbook = openpyxl.Workbook()
    ws = workbook.active
    ws.title = "Data"
    ws.append(["name", "age", "joined"])
    ws.append(["Alice", 30, datetime.date(2020, 1, 2)])
    ws.append([None, None, None])
    ws.append(["Bob", 25.5, None])

    other = workbook.create_sheet("Other")
    other.append(["x"])
    other.append([1])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def restore_logging():
    """Close and detach the handlers setup_logging installed."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
