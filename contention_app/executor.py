"""
Request executor: one HTTP call per invocation, no retries.

The executor builds the request for an :class:`~contention_app.models.Operation`,
sends it with the identity's bearer token, and returns an unclassified
:class:`~contention_app.models.RawResponse`.  A failed call is reported as
is -- retrying would mask exactly the contention behaviour being measured.

Transport-level problems (DNS failure, refused connection, timeout) are
caught here and surfaced as a synthetic status ``0``; an undecodable body
only sets ``parse_failed``.  Deciding what either means is the
classifier's job.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from contention_app.models import Identity, Operation, RawResponse

logger = logging.getLogger(__name__)

# Status reported when no HTTP response was received at all.
TRANSPORT_ERROR_STATUS = 0

_ROUTES: dict[Operation, tuple[str, str]] = {
    Operation.CREATE_REGISTRATION: ("POST", "/events/{event_id}/pre-registers"),
    Operation.SELECT_RESOURCE: ("POST", "/events/{event_id}/seats/{seat_id}/select"),
    Operation.DESELECT_RESOURCE: ("DELETE", "/events/{event_id}/seats/{seat_id}/deselect"),
    Operation.READ_EVENT: ("GET", "/events/{event_id}"),
    Operation.READ_SEATS: ("GET", "/events/{event_id}/seats"),
}


def auth_headers(token: str, *, with_body: bool = True) -> dict[str, str]:
    """Build bearer-auth JSON headers; ``Content-Type`` only for POSTs."""
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
    }
    if with_body:
        headers["Content-Type"] = "application/json"
    return headers


def build_tags(
    operation: Operation,
    *,
    scenario: str,
    run_id: str,
    event_id: int,
    resource_id: int,
    identity_id: int,
    seat_id: int | None = None,
    grade: str | None = None,
) -> dict[str, str]:
    """Return correlation tags for one call.  Tags never affect control flow."""
    tags = {
        "api": operation.value,
        "scenario": scenario,
        "test_id": run_id,
        "event_id": str(event_id),
        "resource_id": str(resource_id),
        "identity_id": str(identity_id),
    }
    if seat_id is not None:
        tags["seat_id"] = str(seat_id)
    if grade is not None:
        tags["grade"] = grade
    return tags


def _decode_body(response: Any) -> tuple[Any, bool]:
    """Return ``(payload, parse_failed)`` for a response body."""
    if not response.content:
        return None, False
    try:
        return response.json(), False
    except ValueError:
        return None, True


class RequestExecutor:
    """
    Issues operations against the ticketing backend.

    Args:
        base_url: Target base address, e.g. ``http://localhost:8080``.
        api_prefix: Path prefix of every API route.
        timeout: Per-request timeout in seconds.
        session: HTTP session to send through.  Defaults to a fresh
            :class:`requests.Session`; the Locust adapter passes its own.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api/v1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        prefix = api_prefix.strip("/")
        self.api_prefix = f"/{prefix}" if prefix else ""
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def url_for(self, operation: Operation, event_id: int, seat_id: int | None = None) -> str:
        _, template = _ROUTES[operation]
        path = template.format(event_id=event_id, seat_id=seat_id)
        return f"{self.base_url}{self.api_prefix}{path}"

    def execute(
        self,
        operation: Operation,
        identity: Identity,
        *,
        event_id: int,
        seat_id: int | None = None,
        grade: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> RawResponse:
        """
        Perform one call and return the raw, unclassified result.

        Args:
            operation: Which backend operation to issue.
            identity: Identity whose credential authorises the call.
            event_id: Event path parameter.
            seat_id: Seat path parameter for select/deselect.
            grade: Optional ``grade`` query parameter for seat listings.
            tags: Correlation metadata for downstream aggregation.
        """
        method, _ = _ROUTES[operation]
        params = {"grade": grade} if grade is not None else None
        request_kwargs: dict[str, Any] = {
            "headers": auth_headers(identity.credential, with_body=method == "POST"),
            "params": params,
            "timeout": self.timeout,
        }
        request_kwargs.update(self._extra_request_kwargs(operation, tags or {}))

        started = time.perf_counter()
        try:
            response = self._send(
                operation, method, self.url_for(operation, event_id, seat_id), request_kwargs
            )
        except requests.RequestException as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            logger.warning(
                "%s transport error for userId=%s eventId=%s seatId=%s: %s",
                operation.value,
                identity.id,
                event_id,
                seat_id,
                exc,
            )
            return RawResponse(
                status=TRANSPORT_ERROR_STATUS,
                transport_error=str(exc) or exc.__class__.__name__,
                elapsed_ms=elapsed_ms,
            )

        return self.to_raw(response, (time.perf_counter() - started) * 1000.0)

    def to_raw(self, response: Any, elapsed_ms: float) -> RawResponse:
        """Convert a ``requests``-style response into a :class:`RawResponse`."""
        if response.status_code == TRANSPORT_ERROR_STATUS:
            # Some host runtimes swallow transport exceptions and hand back a
            # status-0 response carrying the error instead.
            error = getattr(response, "error", None)
            return RawResponse(
                status=TRANSPORT_ERROR_STATUS,
                transport_error=str(error) if error else "no response received",
                elapsed_ms=elapsed_ms,
            )

        payload, parse_failed = _decode_body(response)
        return RawResponse(
            status=response.status_code,
            body=response.text,
            payload=payload,
            parse_failed=parse_failed,
            elapsed_ms=elapsed_ms,
        )

    def _extra_request_kwargs(self, operation: Operation, tags: dict[str, str]) -> dict[str, Any]:
        """Hook for host runtimes that accept extra request arguments."""
        return {}

    def _send(
        self,
        operation: Operation,
        method: str,
        url: str,
        request_kwargs: dict[str, Any],
    ) -> Any:
        return self.session.request(method, url, **request_kwargs)
