import json
import logging

import pytest

from gamr.core.errors import core_error_status, error_payload
from gamr.core.logging import JsonFormatter, RequestIdFilter
from gamr.core.request_id import ensure_request_id, get_request_id, set_request_id
from gamr.engine.errors import (
    CoreError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    InvalidInputError,
    ValidationError,
)


@pytest.fixture(autouse=True)
def _reset_request_id():
    yield
    set_request_id(None)


def test_incoming_request_id_is_kept_when_clean():
    assert ensure_request_id("abc-123_X.y") == "abc-123_X.y"
    assert get_request_id() == "abc-123_X.y"


@pytest.mark.parametrize("incoming", [None, "", "   ", "a" * 65, "bad id", "x;drop"])
def test_unusable_request_id_is_replaced(incoming):
    rid = ensure_request_id(incoming)
    assert rid != incoming
    assert len(rid) == 36


@pytest.mark.parametrize(
    "exc, status",
    [
        (InvalidInputError("impact", 9, "hors domaine"), 422),
        (ValidationError("boucle"), 400),
        (DuplicateEdgeError("doublon"), 409),
        (EdgeNotFoundError("inconnue"), 404),
        (CoreError("autre"), 400),
    ],
)
def test_core_error_status(exc, status):
    assert core_error_status(exc) == status


def test_error_payload_shape():
    payload = error_payload(code="NOT_FOUND", message="absent", status=404, request_id="r1")
    err = payload["error"]
    assert err["code"] == "NOT_FOUND"
    assert err["status"] == 404
    assert err["request_id"] == "r1"
    assert "timestamp" in err
    assert "details" not in err

    with_details = error_payload(code="X", message="m", status=400, request_id="r", details={"field": "p"})
    assert with_details["error"]["details"] == {"field": "p"}


def test_json_formatter_includes_request_id_and_extras():
    set_request_id("req-7")
    record = logging.LogRecord("gamr.test", logging.INFO, __file__, 1, "risk_sheet_created", None, None)
    record.risk_sheet_id = "abc"
    record.new_score = 48
    record.unrelated = "ignored"

    assert RequestIdFilter().filter(record)
    line = json.loads(JsonFormatter().format(record))

    assert line["request_id"] == "req-7"
    assert line["msg"] == "risk_sheet_created"
    assert line["risk_sheet_id"] == "abc"
    assert line["new_score"] == 48
    assert "unrelated" not in line
