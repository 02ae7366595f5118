"""Tests for status → error mapping and validation-message parsing."""

from __future__ import annotations

import pytest

from adapters.adt_api.responses import (
    normalize_severity,
    parse_named_items,
    parse_validation_result,
    raise_for_response,
)
from core.domain.models import Severity
from core.errors import AuthError, ConflictError, NotFoundError, RequestError
from core.interfaces.transport import TransportResponse
from payloads import NAMED_ITEMS, asx_validation_body, exception_body, validation_body


class TestRaiseForResponse:
    def test_success_passes_through(self) -> None:
        response = TransportResponse(201, {"Location": "/x"})
        assert raise_for_response(response) is response

    def test_expected_statuses(self) -> None:
        response = TransportResponse(304)
        assert raise_for_response(response, expected=(200, 304)) is response

    def test_401_is_auth_error(self) -> None:
        with pytest.raises(AuthError):
            raise_for_response(TransportResponse(401), resource="ZDEMO", phase="read")

    def test_404_is_not_found_with_resource_and_phase(self) -> None:
        with pytest.raises(NotFoundError) as info:
            raise_for_response(
                TransportResponse(404, {}, exception_body("ExceptionResourceNotFound", "Package ZX does not exist")),
                resource="ZX",
                phase="acquiring",
            )
        assert info.value.resource == "ZX"
        assert info.value.phase == "acquiring"
        assert info.value.status == 404
        assert "Package ZX does not exist" in str(info.value)

    def test_already_exists_type_is_conflict(self) -> None:
        body = exception_body("ExceptionResourceAlreadyExists", "Resource ZDEMO already exists")
        with pytest.raises(ConflictError):
            raise_for_response(TransportResponse(400, {}, body))

    def test_currently_editing_message_is_conflict(self) -> None:
        body = exception_body("ExceptionResourceNoAccess", "User OTHER is currently editing ZREPORT")
        with pytest.raises(ConflictError):
            raise_for_response(TransportResponse(403, {}, body))

    def test_other_errors_are_request_errors(self) -> None:
        with pytest.raises(RequestError) as info:
            raise_for_response(TransportResponse(500, {}, exception_body("ExceptionInternal", "boom")))
        assert info.value.status == 500
        assert "boom" in info.value.message

    def test_plain_text_body(self) -> None:
        with pytest.raises(RequestError) as info:
            raise_for_response(TransportResponse(500, {}, "Internal failure"))
        assert info.value.message == "Internal failure"


class TestSeverity:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("error", Severity.ERROR),
            ("ERROR", Severity.ERROR),
            ("warning", Severity.WARNING),
            ("W", Severity.WARNING),
            ("E", Severity.ERROR),
            ("A", Severity.ERROR),
            ("S", Severity.SUCCESS),
            ("I", Severity.INFO),
            ("", Severity.INFO),
            (None, Severity.INFO),
            ("fatal", Severity.ERROR),
        ],
    )
    def test_normalize(self, raw, expected) -> None:
        assert normalize_severity(raw) is expected


class TestValidationResult:
    def test_only_errors_block(self) -> None:
        result = parse_validation_result(
            validation_body(("success", "ok"), ("info", "note"), ("warning", "careful"))
        )
        assert result.success is True
        assert [m.severity for m in result.messages] == [Severity.SUCCESS, Severity.INFO, Severity.WARNING]

    def test_error_message_blocks_and_keeps_order(self) -> None:
        result = parse_validation_result(validation_body(("warning", "first"), ("error", "second")))
        assert result.success is False
        assert [m.text for m in result.messages] == ["first", "second"]
        assert [m.text for m in result.errors] == ["second"]

    def test_asx_format(self) -> None:
        result = parse_validation_result(asx_validation_body("E", "Package name already in use"))
        assert result.success is False
        assert result.messages[0].text == "Package name already in use"

    def test_asx_check_result_without_severity_is_success(self) -> None:
        result = parse_validation_result(asx_validation_body("", "", check_result="X"))
        assert result.success is True
        assert result.messages[0].severity is Severity.SUCCESS

    def test_empty_body_is_success(self) -> None:
        assert parse_validation_result("").success is True


def test_parse_named_items() -> None:
    items = parse_named_items(NAMED_ITEMS)
    assert [(i.name, i.description) for i in items] == [
        ("HOME", "Customer developments"),
        ("LOCAL", "Local developments"),
    ]
