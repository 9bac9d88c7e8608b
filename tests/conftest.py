import logging
import os
from pathlib import Path

import pytest

from pipeline.schemas import RawTags
from utils.config_loader import SorterConfig


class FakeMetadataReader:
    """Returns canned tags per file name; an Exception value is raised instead."""

    def __init__(self, tags_by_name):
        self.tags_by_name = tags_by_name
        self.calls = []

    def __call__(self, file_path: Path) -> RawTags:
        self.calls.append(file_path)
        result = self.tags_by_name.get(file_path.name, RawTags())
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_reader():
    return FakeMetadataReader


@pytest.fixture
def sorter_config(tmp_path):
    return SorterConfig(
        source_path=str(tmp_path / "source"),
        destination_path=str(tmp_path / "dest"),
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("MUSIC_SORTER_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
