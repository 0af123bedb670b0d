"""Tests for diagnostic sinks."""

import logging

import pytest

from deploydeck.core.diagnostics import DiagnosticEvent, LoggingSink, RecordingSink


def test_logging_sink_formats_fields(caplog):
    sink = LoggingSink(logging.getLogger("deploydeck.test"))
    with caplog.at_level(logging.DEBUG, logger="deploydeck.test"):
        sink.emit(DiagnosticEvent("cache.hit", fields={"key": "projects", "age_ms": 5}))
    assert caplog.records[0].getMessage() == "cache.hit age_ms=5 key='projects'"


def test_logging_sink_attaches_error(caplog):
    sink = LoggingSink(logging.getLogger("deploydeck.test"))
    error = RuntimeError("disk full")
    with caplog.at_level(logging.ERROR, logger="deploydeck.test"):
        sink.emit(DiagnosticEvent("cache.storage_error", logging.ERROR, {"op": "set"}, error))
    assert caplog.records[0].levelno == logging.ERROR
    assert caplog.records[0].exc_info[1] is error


def test_logging_sink_respects_level(caplog):
    sink = LoggingSink(logging.getLogger("deploydeck.test"))
    with caplog.at_level(logging.INFO, logger="deploydeck.test"):
        sink.emit(DiagnosticEvent("cache.miss", fields={"key": "k"}))
    assert caplog.records == []


def test_recording_sink_forwards():
    inner = RecordingSink()
    outer = RecordingSink(forward=inner)
    outer.emit(DiagnosticEvent("a"))
    outer.emit(DiagnosticEvent("b"))

    assert outer.names() == ["a", "b"]
    assert inner.names() == ["a", "b"]
    assert outer.of("b")[0].name == "b"
    outer.clear()
    assert outer.events == []


@pytest.mark.asyncio
async def test_cache_reports_to_injected_sink(cache, sink):
    await cache.set("k", 1)
    await cache.get("k")
    await cache.get("missing")
    assert sink.names() == ["cache.set", "cache.hit", "cache.miss"]
