"""Log formatting tests."""

from __future__ import annotations

import logging

import orjson

from voice_journal.core.logging import JsonFormatter


def test_context_fields_are_grouped() -> None:
    record = logging.LogRecord("voice_journal.workflow", logging.WARNING, __file__, 1, "failed %s", ("x",), None)
    record.ctx_entry_id = "entry_1"
    record.ctx_path = "/tmp/a.wav"

    payload = orjson.loads(JsonFormatter().format(record))

    assert payload["message"] == "failed x"
    assert payload["level"] == "WARNING"
    assert payload["context"] == {"entry_id": "entry_1", "path": "/tmp/a.wav"}
