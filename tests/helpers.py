"""
Helpers shared by the harness tests: payload builders and a scripted
executor fake.
"""

import base64
import threading
from typing import Any

from faker import Faker

from contention_app.models import Operation, RawResponse


fake = Faker()

TEST_SECRET = base64.b64encode(b"seat-contention-test-signing-key-32b").decode("ascii")


def ticket_payload(seat_id: int, event_id: int = 3) -> dict[str, Any]:
    """Well-formed select-seat response body."""
    return {
        "data": {
            "ticketId": fake.random_int(min=1, max=10_000),
            "eventId": event_id,
            "seatId": seat_id,
            "seatCode": f"A-{seat_id}",
            "seatGrade": "VIP",
            "seatPrice": 150000,
            "seatStatus": "SELECTED",
            "ticketStatus": "SELECTED",
        }
    }


def registration_payload(event_id: int, user_id: int) -> dict[str, Any]:
    """Well-formed pre-registration response body."""
    return {
        "data": {
            "id": fake.random_int(min=1, max=10_000),
            "eventId": event_id,
            "userId": user_id,
            "status": "READY",
            "createdAt": fake.iso8601(),
        }
    }


class FakeExecutor:
    """
    Scripted stand-in for :class:`contention_app.executor.RequestExecutor`.

    ``responder(operation, call)`` returns the :class:`RawResponse` for a
    call; the default answers every operation with its success shape.
    Every call is recorded in :attr:`calls`.
    """

    def __init__(self, responder=None):
        self.responder = responder or default_responder
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def execute(self, operation, identity, *, event_id, seat_id=None, grade=None, tags=None):
        call = {
            "operation": operation,
            "identity_id": identity.id,
            "event_id": event_id,
            "seat_id": seat_id,
            "grade": grade,
            "tags": tags,
        }
        with self._lock:
            self.calls.append(call)
        return self.responder(operation, call)


def default_responder(operation: Operation, call: dict[str, Any]) -> RawResponse:
    if operation is Operation.CREATE_REGISTRATION:
        return RawResponse(201, payload=registration_payload(call["event_id"], call["identity_id"]))
    if operation is Operation.SELECT_RESOURCE:
        return RawResponse(200, payload=ticket_payload(call["seat_id"], call["event_id"]))
    if operation is Operation.DESELECT_RESOURCE:
        return RawResponse(204)
    if operation is Operation.READ_SEATS:
        return RawResponse(200, payload={"data": []})
    return RawResponse(200, payload={"data": {"id": call["event_id"]}})

