#tests/test_monitoring_logger.py
"""
Tests for monitoring.logger.JsonFileLogger and log_event.

Covers:
- JSON structure validity
- Correct field encoding
- Parent directory creation
- close() detaches from the bus
"""

from __future__ import annotations

import json
from pathlib import Path

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import JsonFileLogger, log_event


def test_json_file_logger_writes_valid_json(tmp_path: Path):
    bus = EventBus()
    log_path = tmp_path / "events.log"

    logger = JsonFileLogger(log_path, bus)

    log_event(
        bus=bus,
        module="fleet.tasks",
        event_type=EventType.TASK_FINISHED,
        message="Task repeat on alpha completed",
        payload={"agent_name": "alpha", "steps_run": 5},
        correlation_id="alpha",
    )
    logger.close()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1

    data = json.loads(lines[0])
    assert data["module"] == "fleet.tasks"
    assert data["event_type"] == "TASK_FINISHED"
    assert data["message"] == "Task repeat on alpha completed"
    assert data["payload"] == {"agent_name": "alpha", "steps_run": 5}
    assert data["correlation_id"] == "alpha"
    assert isinstance(data["ts"], (int, float))


def test_logger_parent_dir_created(tmp_path: Path):
    log_path = tmp_path / "nested" / "logs" / "events.log"

    bus = EventBus()
    logger = JsonFileLogger(log_path, bus)
    log_event(bus=bus, module="test", event_type=EventType.LOG, message="hello")
    logger.close()

    assert log_path.exists()
    assert log_path.read_text(encoding="utf-8").strip()


def test_logger_stops_writing_after_close(tmp_path: Path):
    log_path = tmp_path / "events.log"
    bus = EventBus()
    logger = JsonFileLogger(log_path, bus)

    log_event(bus=bus, module="test", event_type=EventType.LOG, message="before")
    logger.close()
    log_event(bus=bus, module="test", event_type=EventType.LOG, message="after")

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["before"]


def test_log_event_without_bus_is_noop():
    # Must not raise.
    log_event(bus=None, module="test", event_type=EventType.LOG, message="dropped")
