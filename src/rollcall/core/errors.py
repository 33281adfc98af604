"""Domain errors raised by the roster and identity services."""

from __future__ import annotations


class RollcallError(Exception):
    """Base class for signup domain errors."""


class EventNotFound(RollcallError):
    """Raised when an event id does not exist."""

    def __init__(self, event_id: int) -> None:
        super().__init__(f"Event with ID {event_id} not found")
        self.event_id = event_id


class SignupNotFound(RollcallError):
    """Raised when the addressed signup does not exist."""


class CharacterNotFound(RollcallError):
    """Raised when a character is missing or belongs to someone else."""


class SignupOwnershipError(RollcallError):
    """Raised when a user tries to confirm someone else's signup."""
