"""Tests for the shared console logger."""

from simpidemic.core import codec, orchestrator
from simpidemic.core.log import log


def test_prefixed_line(capsys):
    log("Simulating 10 days")
    assert capsys.readouterr().out == "[simpidemic] Simulating 10 days\n"


def test_one_logger_everywhere():
    assert codec.log is log
    assert orchestrator.log is log
