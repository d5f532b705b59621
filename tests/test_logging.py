"""Tests for the structured logging system (backoffice_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from backoffice_kernel.exceptions import CumulativePercentageExceededError
from backoffice_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def fresh_logging():
    """Start from unconfigured logging and restore the suite setup afterwards."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _events(records: list[dict], message: str) -> list[dict]:
    return [r for r in records if r["message"] == message]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("fresh_logging")
class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "backoffice.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("invoice_created", extra={"invoice_sequence": 3})

        assert _parse_log(stream)["invoice_sequence"] == 3

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", project_code="J26001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["project_code"] == "J26001"

    def test_backoffice_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise CumulativePercentageExceededError("J26001", Decimal("110"))
        except CumulativePercentageExceededError:
            get_logger("test").error("invoice_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CUMULATIVE_PERCENTAGE_EXCEEDED"
        assert record["exc_type"] == "CumulativePercentageExceededError"
        assert record["exc_project_code"] == "J26001"
        assert "traceback" in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_uuid", extra={"invoice_id": uid})

        assert _parse_log(stream)["invoice_id"] == str(uid)

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.debug("hidden")
        logger.info("shown")

        lines = [json.loads(line) for line in stream.getvalue().strip().split("\n") if line]
        assert [r["message"] for r in lines] == ["shown"]

    def test_configure_is_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        assert len(logging.getLogger("backoffice").handlers) == 1


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_clear(self):
        LogContext.set(actor_id="a", po_id="p")
        assert LogContext.get_all() == {"actor_id": "a", "po_id": "p"}

        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(project_code="J26001")
        with LogContext.bind(project_code="J26002"):
            assert LogContext.get_all()["project_code"] == "J26002"
        assert LogContext.get_all()["project_code"] == "J26001"

    def test_bind_restores_none(self):
        with LogContext.bind(invoice_id=uuid4()):
            assert "invoice_id" in LogContext.get_all()
        assert "invoice_id" not in LogContext.get_all()


# ---------------------------------------------------------------------------
# Domain events
# ---------------------------------------------------------------------------


class TestLifecycleEvents:

    def test_po_created_carries_context(self, captured_logs, make_project, make_po):
        make_project("J26001")
        result = make_po("J26001", "PO-4410")

        [event] = _events(captured_logs(), "po_created")
        assert event["po_id"] == str(result.po.id)
        assert event["project_code"] == "J26001"
        assert event["amount_myr"] == "10000.00"

    def test_project_status_changed_logged_once(self, captured_logs, make_project, make_po):
        make_project("J26001")
        make_po("J26001", "PO-4410")

        [event] = _events(captured_logs(), "project_status_changed")
        assert event["previous_status"] == "pre-lim"
        assert event["new_status"] == "ongoing"

    def test_idempotent_sync_is_silent(self, captured_logs, make_project, make_po, deriver):
        make_project("J26001")
        make_po("J26001", "PO-4410")

        transition = deriver.sync("J26001")

        assert transition.changed is False
        assert len(_events(captured_logs(), "project_status_changed")) == 1

    def test_po_revision_created(self, captured_logs, make_project, make_po, po_service, test_actor_id):
        make_project("J26001")
        original = make_po("J26001", "PO-4410").po

        po_service.create_revision(
            original.id,
            amount=Decimal("12000"),
            currency="MYR",
            received_date=date(2026, 3, 9),
            actor_id=test_actor_id,
            revision_reason="client added scope",
        )

        [event] = _events(captured_logs(), "po_revision_created")
        assert event["po_number"] == "PO-4410 Rev 2"
        assert event["revision_number"] == 2
        assert event["superseded_po_id"] == str(original.id)

    def test_invoice_created_carries_context(
        self, captured_logs, make_project, invoice_service, test_actor_id
    ):
        make_project("J26001")

        result = invoice_service.create_invoice(
            "MCE1548",
            "J26001",
            "Structural assessment",
            amount=Decimal("4000"),
            invoice_date=date(2026, 3, 2),
            percentage_of_total=Decimal("40"),
            actor_id=test_actor_id,
        )

        [event] = _events(captured_logs(), "invoice_created")
        assert event["invoice_id"] == str(result.invoice.id)
        assert event["project_code"] == "J26001"
        assert event["invoice_sequence"] == 1
        assert event["cumulative_percentage"] == "40"
