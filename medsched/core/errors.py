"""Error taxonomy shared by the scheduling core and its collaborators.

Expected outcomes (a slot that is already taken, a hold that expired) are not
errors: the collision detector answers with a boolean and services answer
with ``(obj, err)`` pairs. The exceptions below are reserved for malformed
input and for operations that cannot proceed.
"""


class SchedulingError(Exception):
    """Base class for every error raised by medsched."""


class InvalidFormat(SchedulingError, ValueError):
    """A date or time string could not be parsed."""


class InvalidIdentifier(SchedulingError, ValueError):
    """A record identifier does not have the shape the backend expects."""


class NotFound(SchedulingError, LookupError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidTransition(SchedulingError):
    def __init__(self, current: str, target: str):
        super().__init__(f"cannot move appointment from {current} to {target}")
        self.current = current
        self.target = target


class RaceOnRelease(SchedulingError):
    """A basket item is already being released by another path."""
