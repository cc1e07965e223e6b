"""Tests for the log filter and formatter."""

import logging

import pytest

from clustermgr.log import MainFormatter, VerbosityFilter


def _record(name, level, msg="message", **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestVerbosityFilter:
    """Test what reaches the console in quiet and verbose mode."""

    def test_quiet_mode(self):
        quiet = VerbosityFilter(verbose=False)
        assert not quiet.filter(_record("clustermgr.supervisor", logging.INFO))
        assert quiet.filter(_record("clustermgr.supervisor", logging.WARNING))
        assert quiet.filter(_record("proc.worker.1", logging.INFO))
        assert quiet.filter(_record("clustermgr.supervisor", logging.INFO, force=True))

    def test_verbose_mode(self):
        assert VerbosityFilter(verbose=True).filter(_record("clustermgr", logging.DEBUG))


@pytest.mark.unit
class TestMainFormatter:
    """Test regular and raw worker formatting."""

    def test_worker_output_is_raw(self):
        formatter = MainFormatter()
        assert formatter.format(_record("proc.worker.2", logging.INFO, "GET / 200")) == "GET / 200"

    def test_regular_records(self):
        formatted = MainFormatter().format(_record("clustermgr.supervisor", logging.WARNING, "hello"))
        assert "WARNING" in formatted
        assert "[clustermgr.supervisor] - hello" in formatted
