"""Tests for the error response handlers."""

import json

import pytest
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from firmbook.middleware.exceptions import (
    DocumentNotFoundError,
    integrity_exception_handler,
)


def _request(path: str = "/api/billing/submit") -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "path": path,
        "headers": [],
        "query_string": b"",
    })


@pytest.mark.unit
@pytest.mark.asyncio
class TestExceptionHandlers:

    async def test_integrity_error_is_conflict(self):
        exc = IntegrityError(
            "INSERT INTO activity_log ...", {},
            Exception("NOT NULL constraint failed: activity_log.type"),
        )

        response = await integrity_exception_handler(_request(), exc)

        assert response.status_code == 409
        body = json.loads(response.body)
        assert body["error"]["code"] == "NULL_VALUE_NOT_ALLOWED"

    async def test_duplicate_activity_entry(self):
        exc = IntegrityError(
            "INSERT INTO activity_log ...", {},
            Exception("UNIQUE constraint failed: activity_log.id"),
        )

        response = await integrity_exception_handler(_request(), exc)

        assert response.status_code == 409
        assert json.loads(response.body)["error"]["code"] == "DUPLICATE_RECORD"


@pytest.mark.unit
class TestDocumentNotFoundError:

    def test_single_document(self):
        err = DocumentNotFoundError("engagements/e1")
        assert err.message == "No document to update: engagements/e1"
        assert err.details == {"documents": ["engagements/e1"]}

    def test_several_suspects(self):
        err = DocumentNotFoundError("engagements/e1", "invoices/i1")
        assert "engagements/e1, invoices/i1" in err.message
        assert err.status_code == 409
