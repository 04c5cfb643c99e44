import json
from datetime import date
from typing import Any, List

import pytest
from seatbook.models import ReservationStatus
from seatbook.utils import audit_log
from seatbook.utils.request_id import set_request_id


class DummyLogger:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)


def test_emit_audit_log_outputs_json(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    set_request_id("req-123")
    try:
        audit_log.emit_audit_log(
            action="reservation.expired",
            initiator="user",
            reservation_id=1,
            seat_id=3,
            user_id=4,
            ref_date=date(2025, 3, 10),
            started_at=9,
            ended_at=10,
            status_from=ReservationStatus.ACTIVE,
            status_to=ReservationStatus.EXPIRED,
            version=2,
            extra={"departure": "within_window", "current_hour": 10},
        )
    finally:
        set_request_id(None)

    assert len(dummy_logger.messages) == 1
    payload = json.loads(dummy_logger.messages[0])
    assert payload["action"] == "reservation.expired"
    assert payload["initiator"] == "user"
    assert payload["request_id"] == "req-123"
    assert payload["ref_date"] == "2025-03-10"
    assert payload["status_from"] == "active"
    assert payload["status_to"] == "expired"
    assert payload["departure"] == "within_window"
    assert payload["current_hour"] == 10
    assert "timestamp" in payload


def test_emit_audit_log_drops_empty_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    audit_log.emit_audit_log(
        action="reservation.created",
        initiator="user",
        reservation_id=7,
        seat_id=1,
        user_id=2,
        ref_date=None,
        started_at=9,
        ended_at=12,
        status_from=None,
        status_to=ReservationStatus.ACTIVE,
        version=1,
    )
    payload = json.loads(dummy_logger.messages[0])
    assert "status_from" not in payload
    assert "ref_date" not in payload
    assert "request_id" not in payload
    assert payload["status_to"] == "active"


def test_emit_audit_log_raises_on_logger_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", FailingLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.cancelled",
            initiator="user",
            reservation_id=1,
            seat_id=2,
            user_id=4,
            ref_date=date(2025, 3, 10),
            started_at=12,
            ended_at=14,
            status_from=ReservationStatus.ACTIVE,
            status_to=ReservationStatus.CANCELLED,
            version=2,
        )
