"""
Unit tests for the response classifier.

Covers the per-operation rules, the tolerated duplicate-registration
case, and the precedence of transport and parse errors over status codes.
"""

import pytest
from faker import Faker

from contention_app.classifier import (
    DUPLICATE_REGISTRATION_MARKER,
    classify,
    describe_failure,
    has_shape,
    is_duplicate_registration,
)
from contention_app.models import Operation, OutcomeCategory, RawResponse
from tests.helpers import registration_payload, ticket_payload


pytestmark = pytest.mark.unit

fake = Faker()

DUPLICATE_MESSAGE = "이미 사전등록되어 있습니다."


class TestCreateRegistration:
    def test_201_with_registration_payload_is_created(self):
        raw = RawResponse(201, payload=registration_payload(5, 1))

        assert classify(Operation.CREATE_REGISTRATION, raw) is OutcomeCategory.CREATED

    @pytest.mark.parametrize("status", [400, 409])
    def test_duplicate_marker_is_tolerated(self, status):
        # Arrange
        raw = RawResponse(status, payload={"message": DUPLICATE_MESSAGE})

        # Act
        category = classify(Operation.CREATE_REGISTRATION, raw)

        # Assert
        assert category is OutcomeCategory.DUPLICATE_IGNORED
        assert not category.is_failure

    @pytest.mark.parametrize("message", ["other error", fake.sentence()])
    def test_400_with_other_message_is_failed(self, message):
        raw = RawResponse(400, payload={"message": message})

        assert classify(Operation.CREATE_REGISTRATION, raw) is OutcomeCategory.FAILED

    def test_marker_on_server_error_is_failed(self):
        raw = RawResponse(500, payload={"message": DUPLICATE_MESSAGE})

        assert classify(Operation.CREATE_REGISTRATION, raw) is OutcomeCategory.FAILED

    def test_201_missing_field_is_failed(self):
        payload = registration_payload(5, 1)
        del payload["data"]["createdAt"]

        raw = RawResponse(201, payload=payload)

        assert classify(Operation.CREATE_REGISTRATION, raw) is OutcomeCategory.FAILED

    def test_boolean_is_not_numeric(self):
        payload = registration_payload(5, 1)
        payload["data"]["userId"] = True

        raw = RawResponse(201, payload=payload)

        assert classify(Operation.CREATE_REGISTRATION, raw) is OutcomeCategory.FAILED

    def test_duplicate_check_needs_marker_substring(self):
        assert is_duplicate_registration(
            RawResponse(409, payload={"message": f"{DUPLICATE_REGISTRATION_MARKER}된 사용자"})
        )
        assert not is_duplicate_registration(RawResponse(409, payload={"message": "conflict"}))
        assert not is_duplicate_registration(RawResponse(409, payload=["not", "an", "object"]))


class TestSeatOperations:
    def test_select_200_with_ticket_is_created(self):
        raw = RawResponse(200, payload=ticket_payload(12))

        assert classify(Operation.SELECT_RESOURCE, raw) is OutcomeCategory.CREATED

    def test_select_already_held_is_failed(self):
        raw = RawResponse(400, payload={"message": "선택할 수 없는 좌석입니다."})

        assert classify(Operation.SELECT_RESOURCE, raw) is OutcomeCategory.FAILED

    def test_select_200_with_wrong_shape_is_failed(self):
        payload = ticket_payload(12)
        payload["data"]["seatPrice"] = "150000"

        raw = RawResponse(200, payload=payload)

        assert classify(Operation.SELECT_RESOURCE, raw) is OutcomeCategory.FAILED

    def test_deselect_204_is_deselected(self):
        assert classify(Operation.DESELECT_RESOURCE, RawResponse(204)) is OutcomeCategory.DESELECTED

    def test_deselect_body_is_never_parsed(self):
        raw = RawResponse(204, body="<html>", parse_failed=True)

        assert classify(Operation.DESELECT_RESOURCE, raw) is OutcomeCategory.DESELECTED

    @pytest.mark.parametrize("status", [200, 400, 404, 500])
    def test_deselect_other_status_is_failed(self, status):
        assert classify(Operation.DESELECT_RESOURCE, RawResponse(status)) is OutcomeCategory.FAILED


class TestReads:
    def test_event_read_with_object_is_fetched(self):
        raw = RawResponse(200, payload={"data": {"id": 3}})

        assert classify(Operation.READ_EVENT, raw) is OutcomeCategory.FETCHED

    def test_seat_listing_needs_a_list(self):
        assert classify(Operation.READ_SEATS, RawResponse(200, payload={"data": []})) is OutcomeCategory.FETCHED
        assert classify(Operation.READ_SEATS, RawResponse(200, payload={"data": {}})) is OutcomeCategory.FAILED

    def test_missing_event_is_failed(self):
        raw = RawResponse(404, payload={"message": "존재하지 않는 이벤트입니다."})

        assert classify(Operation.READ_EVENT, raw) is OutcomeCategory.FAILED


class TestPrecedence:
    @pytest.mark.parametrize("operation", list(Operation))
    def test_transport_error_is_failed(self, operation):
        raw = RawResponse(0, transport_error="Connection refused")

        assert classify(operation, raw) is OutcomeCategory.FAILED

    def test_unparseable_body_is_parse_error_not_failed(self):
        raw = RawResponse(201, body="<html>oops</html>", parse_failed=True)

        category = classify(Operation.CREATE_REGISTRATION, raw)

        assert category is OutcomeCategory.PARSE_ERROR
        assert category.is_failure


class TestDescribeFailure:
    def test_describes_transport_error(self):
        raw = RawResponse(0, transport_error="timed out")

        assert describe_failure(Operation.SELECT_RESOURCE, raw) == "transport error: timed out"

    def test_describes_unexpected_status_with_message(self):
        raw = RawResponse(400, payload={"message": "선택할 수 없는 좌석입니다."})

        reason = describe_failure(Operation.SELECT_RESOURCE, raw)

        assert reason == "expected 200, got 400: 선택할 수 없는 좌석입니다."

    def test_describes_malformed_payload(self):
        raw = RawResponse(201, payload={"data": {}})

        assert "malformed" in describe_failure(Operation.CREATE_REGISTRATION, raw)


def test_has_shape_rejects_non_objects():
    assert not has_shape(None, ("id",), ())
    assert not has_shape([1, 2], ("id",), ())
    assert has_shape({"id": 1.5, "name": "x"}, ("id",), ("name",))
