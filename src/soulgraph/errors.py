class SoulGraphError(Exception):
    """Base class for recoverable registry errors."""


class ValidationError(SoulGraphError):
    """Malformed input to registration (bad text or metadata)."""


class NotFoundError(SoulGraphError):
    """An operation referenced an entity or formation that does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InvalidStateError(SoulGraphError):
    """A formation transition was requested from the wrong state."""
