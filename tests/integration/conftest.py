"""
Pytest configuration and fixtures for integration tests.
"""

import logging
import zipfile
import pytest
from decimal import Decimal

from rangebars.core.config import RangeBarConfig


HEADER = "DateTime,Close,BidVolume,AskVolume"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Integration tests that read and write real archives"
    )


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """
    Setup logging for all tests.

    This fixture runs automatically for all tests and ensures
    log output is captured and displayed.
    """
    caplog.set_level(logging.INFO)
    logging.getLogger('rangebars').setLevel(logging.INFO)


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to handle integration test markers.

    This automatically marks all tests in the integration directory
    as 'integration' tests.
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def _write_archive(path, rows, header=HEADER, entry_name=None, extra_entries=()):
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ([header] if header is not None else []) + list(rows)
    with zipfile.ZipFile(path, 'w') as zf:
        zf.writestr(entry_name or path.stem + ".txt", "".join(f"{line}\r\n" for line in lines))
        for name in extra_entries:
            zf.writestr(name, HEADER + "\r\n")
    return path


@pytest.fixture
def write_archive():
    """Writer for tick archives holding one CSV entry (plus any extra entries)."""
    return _write_archive


@pytest.fixture
def dirs(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    return input_dir, output_dir


@pytest.fixture
def make_config(dirs):
    """Config factory with a 0.25 bar threshold and no minimum session length."""
    input_dir, output_dir = dirs

    def factory(**overrides):
        settings = dict(
            input_dir=input_dir,
            output_dir=output_dir,
            update_only=False,
            max_workers=2,
            tick_range=1,
            min_bars_per_session=0,
            max_percent_loss=Decimal("0.2"),
        )
        settings.update(overrides)
        return RangeBarConfig(**settings)

    return factory
