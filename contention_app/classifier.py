"""
Response classifier.

Maps a :class:`~contention_app.models.RawResponse` to an
:class:`~contention_app.models.OutcomeCategory` using operation-specific
rules.  The rules mirror the checks the backend's contract guarantees:

=====================  ==========================================  ====================================
Operation              Success                                     Tolerated non-failure
=====================  ==========================================  ====================================
create-registration    201 + well-formed registration payload      400/409 whose message carries the
                                                                   "already pre-registered" marker
select-resource        200 + well-formed ticket payload            none
deselect-resource      204                                         none
read event / seats     200 + ``data`` object / list                n/a
=====================  ==========================================  ====================================

The duplicate rule exists because the backend enforces a unique
(event, user) constraint: re-registering after a first success is an
expected idempotent outcome and must not pollute failure-rate metrics.
Both 400 and 409 are accepted when the marker matches, since the status
the backend uses for duplicates differs between deployments.
"""

from __future__ import annotations

from typing import Any

from contention_app.models import Operation, OutcomeCategory, RawResponse

# Substring of the backend's ALREADY_PRE_REGISTERED message
# ("이미 사전등록되어 있습니다.").
DUPLICATE_REGISTRATION_MARKER = "이미 사전등록"
DUPLICATE_STATUSES = frozenset({400, 409})

REGISTRATION_NUMERIC_FIELDS = ("id", "eventId", "userId")
REGISTRATION_STRING_FIELDS = ("status", "createdAt")

SELECTION_NUMERIC_FIELDS = ("ticketId", "eventId", "seatId", "seatPrice")
SELECTION_STRING_FIELDS = ("seatCode", "seatGrade", "seatStatus", "ticketStatus")

# Operations whose responses carry a JSON envelope worth decoding.
_JSON_OPERATIONS = frozenset(
    {
        Operation.CREATE_REGISTRATION,
        Operation.SELECT_RESOURCE,
        Operation.READ_EVENT,
        Operation.READ_SEATS,
    }
)


def _is_number(value: Any) -> bool:
    # bool is an int subclass, but a JSON true/false is not a number.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def has_shape(data: Any, numeric: tuple[str, ...], strings: tuple[str, ...]) -> bool:
    """Return True when *data* is an object with the required typed fields."""
    if not isinstance(data, dict):
        return False
    if not all(_is_number(data.get(name)) for name in numeric):
        return False
    return all(isinstance(data.get(name), str) for name in strings)


def is_duplicate_registration(raw: RawResponse) -> bool:
    return raw.status in DUPLICATE_STATUSES and DUPLICATE_REGISTRATION_MARKER in raw.message


def _classify_registration(raw: RawResponse) -> OutcomeCategory:
    if raw.status == 201:
        if has_shape(raw.data, REGISTRATION_NUMERIC_FIELDS, REGISTRATION_STRING_FIELDS):
            return OutcomeCategory.CREATED
        return OutcomeCategory.FAILED
    if is_duplicate_registration(raw):
        return OutcomeCategory.DUPLICATE_IGNORED
    return OutcomeCategory.FAILED


def _classify_selection(raw: RawResponse) -> OutcomeCategory:
    if raw.status == 200 and has_shape(raw.data, SELECTION_NUMERIC_FIELDS, SELECTION_STRING_FIELDS):
        return OutcomeCategory.CREATED
    return OutcomeCategory.FAILED


def _classify_deselection(raw: RawResponse) -> OutcomeCategory:
    if raw.status == 204:
        return OutcomeCategory.DESELECTED
    return OutcomeCategory.FAILED


def _classify_event_read(raw: RawResponse) -> OutcomeCategory:
    if raw.status == 200 and isinstance(raw.data, dict):
        return OutcomeCategory.FETCHED
    return OutcomeCategory.FAILED


def _classify_seat_listing(raw: RawResponse) -> OutcomeCategory:
    if raw.status == 200 and isinstance(raw.data, list):
        return OutcomeCategory.FETCHED
    return OutcomeCategory.FAILED


_RULES = {
    Operation.CREATE_REGISTRATION: _classify_registration,
    Operation.SELECT_RESOURCE: _classify_selection,
    Operation.DESELECT_RESOURCE: _classify_deselection,
    Operation.READ_EVENT: _classify_event_read,
    Operation.READ_SEATS: _classify_seat_listing,
}


def classify(operation: Operation, raw: RawResponse) -> OutcomeCategory:
    """
    Assign an outcome category to one response.

    Transport errors are failures; an undecodable body on an operation that
    returns JSON is a parse error, recorded separately from HTTP failures.
    """
    if raw.transport_error is not None:
        return OutcomeCategory.FAILED
    if operation in _JSON_OPERATIONS and raw.parse_failed:
        return OutcomeCategory.PARSE_ERROR
    return _RULES[operation](raw)


def describe_failure(operation: Operation, raw: RawResponse) -> str:
    """Return a short human-readable reason for a non-successful outcome."""
    if raw.transport_error is not None:
        return f"transport error: {raw.transport_error}"
    if raw.parse_failed:
        return f"JSON parse error: {raw.body[:200]!r}"
    expected = {
        Operation.CREATE_REGISTRATION: 201,
        Operation.DESELECT_RESOURCE: 204,
    }.get(operation, 200)
    if raw.status != expected:
        return f"expected {expected}, got {raw.status}: {raw.message}".rstrip(": ")
    return f"{operation.value} response payload is malformed"
