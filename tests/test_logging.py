import json
import logging

from learnify.core.config import settings
from learnify.core.logging import get_logger, setup_logging


def test_configured_logger_writes_named_event(monkeypatch, caplog) -> None:
    monkeypatch.setattr(settings, "debug", False)
    setup_logging(settings)
    caplog.set_level(logging.INFO)

    get_logger("learnify.tests").info("school_created", school_id="abc")

    records = [r for r in caplog.records if r.name == "learnify.tests"]
    assert len(records) == 1
    event = json.loads(records[0].getMessage())
    assert event["event"] == "school_created"
    assert event["logger"] == "learnify.tests"
    assert event["school_id"] == "abc"
    assert event["level"] == "info"


def test_debug_mode_renders_to_console(monkeypatch, caplog) -> None:
    monkeypatch.setattr(settings, "debug", True)
    setup_logging(settings)
    caplog.set_level(logging.INFO)

    get_logger("learnify.api.v1.members.service").info("member_status_changed", action="approve")

    assert any("member_status_changed" in r.getMessage() for r in caplog.records)
