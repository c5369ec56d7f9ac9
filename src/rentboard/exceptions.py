"""Custom exception hierarchy for rentboard."""

from __future__ import annotations


class RentboardError(Exception):
    """Base exception for all rentboard errors."""


class RentboardConfigError(RentboardError):
    """Invalid or missing configuration."""


class InvalidWindowError(RentboardError):
    """Visible window ends before it starts.

    This is a caller error: it is surfaced immediately and never retried.
    """


class UnknownReservationError(RentboardError, LookupError):
    """Reservation id is not part of the current snapshot."""

    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"Unknown reservation: {reservation_id}")


class TransitionError(RentboardError):
    """Base for status transition failures."""

    def __init__(self, message: str, *, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(message)


class TransitionRejectedError(TransitionError):
    """The persistence collaborator refused a status change.

    The local view has already snapped back to the last confirmed column
    when this is raised; ``reason`` is the server-provided explanation.
    """

    def __init__(self, reservation_id: str, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"Transition of {reservation_id} rejected: {reason}",
            reservation_id=reservation_id,
        )


class TransitionInFlightError(TransitionError):
    """A transition for the same reservation is still unresolved.

    Raised locally before anything is sent, so the dropped request never
    reaches the persistence collaborator.
    """

    def __init__(self, reservation_id: str) -> None:
        super().__init__(
            f"Transition of {reservation_id} already in flight",
            reservation_id=reservation_id,
        )


class StaleSnapshotError(RentboardError):
    """A resnapshot result belongs to a superseded window generation."""

    def __init__(self, generation: int, current: int) -> None:
        self.generation = generation
        self.current = current
        super().__init__(f"Snapshot generation {generation} superseded by {current}")


class RentboardTransportError(RentboardError):
    """HTTP-level failure (network, 5xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RentboardApiError(RentboardError):
    """The REST API answered with an application-level error payload."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
        status_code: int | None = None,
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)
