"""Pytest configuration and fixtures."""

import pytest
import tempfile
import json
from pathlib import Path

from json_relational import ConverterOptions, JsonTableConverter


class ProgressRecorder:
    """Progress sink that keeps every message."""

    def __init__(self):
        self.messages = []

    def __call__(self, message):
        self.messages.append(message)

    def contains(self, fragment):
        """Check whether any recorded message contains ``fragment``."""
        return any(fragment in message for message in self.messages)


@pytest.fixture
def recorder():
    """Progress sink recording the messages of a run."""
    return ProgressRecorder()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def make_converter():
    """Factory building a converter from keyword options."""
    def _make(progress=None, **options):
        return JsonTableConverter(ConverterOptions(**options), progress=progress)
    return _make


@pytest.fixture
def orders_json():
    """Three-level document: customer -> orders -> lines, plus a literal array."""
    return json.dumps({
        "customer": "ACME",
        "country": "FR",
        "orders": [
            {
                "number": 1001,
                "tags": ["urgent", "export"],
                "lines": [
                    {"sku": "A-1", "qty": 2},
                    {"sku": "B-7", "qty": 1}
                ]
            },
            {
                "number": 1002,
                "tags": ["local"],
                "lines": [
                    {"sku": "C-3", "qty": 5}
                ]
            }
        ]
    }, indent=2)


@pytest.fixture
def wide_json():
    """Many sibling objects, enough to spread over several workers."""
    return json.dumps({
        "batch": "b-1",
        "items": [
            {"id": i, "label": f"item {i}", "parts": [{"part": f"{i}-{j}"} for j in range(3)]}
            for i in range(40)
        ]
    })
