"""
Value types shared by the contention engine.

Every type here is immutable once built.  Identities and run parameters
are created once during setup and read concurrently by all virtual users;
outcomes are produced once per HTTP call and never mutated afterwards.

Key Concepts Demonstrated:
- ``str, Enum`` inheritance so categories serialise as plain strings
- Frozen dataclasses for state that is shared across threads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Operation(str, Enum):
    """HTTP operations the engine knows how to issue and classify."""

    CREATE_REGISTRATION = "createPreRegister"
    SELECT_RESOURCE = "selectSeat"
    DESELECT_RESOURCE = "deselectSeat"
    READ_EVENT = "getEvent"
    READ_SEATS = "getSeats"


class OutcomeCategory(str, Enum):
    """
    Classification assigned to every response.

    ``DUPLICATE_IGNORED`` is an expected idempotent no-op and is *not*
    counted as a failure.  ``FETCHED`` is the success category of read
    operations.
    """

    CREATED = "created"
    DUPLICATE_IGNORED = "duplicate_ignored"
    DESELECTED = "deselected"
    FETCHED = "fetched"
    FAILED = "failed"
    PARSE_ERROR = "parse_error"

    @property
    def is_failure(self) -> bool:
        return self in (OutcomeCategory.FAILED, OutcomeCategory.PARSE_ERROR)


@dataclass(frozen=True)
class Identity:
    """A synthetic user and its bearer credential for one run."""

    id: int
    display_name: str
    email: str
    credential: str = field(repr=False)


@dataclass(frozen=True)
class RunParameters:
    """
    Immutable configuration snapshot computed at setup.

    Attributes:
        pool_size: Number of identities in the pool.
        resource_id_range: Resource ids run from ``1`` to this value.
        event_target: Event the scenario targets (registration event or
            the event whose seats are contended).
        run_id: Identifier attached to every request for correlation.
        hot_set_size: Size of the contended subset, when the scenario
            uses one.
    """

    pool_size: int
    resource_id_range: int
    event_target: int
    run_id: str
    hot_set_size: int | None = None


@dataclass(frozen=True)
class VUContext:
    """Per-iteration view of one virtual user."""

    vu_index: int
    iteration_index: int
    identity: Identity


@dataclass(frozen=True)
class RawResponse:
    """
    Unclassified result of one HTTP call.

    ``status`` is ``0`` when the call never produced an HTTP response; in
    that case ``transport_error`` carries the reason.  ``parse_failed`` is
    set when the body was present but could not be decoded as JSON.
    """

    status: int
    body: str = ""
    payload: Any = None
    parse_failed: bool = False
    transport_error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def message(self) -> str:
        """Server-provided ``message`` field, or an empty string."""
        if isinstance(self.payload, dict):
            message = self.payload.get("message")
            if isinstance(message, str):
                return message
        return ""

    @property
    def data(self) -> Any:
        """The ``data`` envelope member, or ``None``."""
        if isinstance(self.payload, dict):
            return self.payload.get("data")
        return None


@dataclass(frozen=True)
class RequestOutcome:
    """Classified result of one HTTP call, tagged for aggregation."""

    operation: Operation
    http_status: int
    category: OutcomeCategory
    resource_id: int
    identity_id: int
    vu_index: int
    iteration_index: int
    timestamp: datetime
    elapsed_ms: float = 0.0
    message: str = ""
    tags: dict[str, str] = field(default_factory=dict, compare=False)
