"""Error taxonomy for TryXpert. Pages catch these and decide how to surface them."""


class TryXpertError(Exception):
    """Base class for application errors."""


class InputValidationError(TryXpertError):
    """Malformed tryout/question input. Carries {field: message} for inline display."""

    def __init__(self, message: str, errors: dict | None = None):
        super().__init__(message)
        self.errors = errors or {}


class ReadOnlyTryoutError(InputValidationError):
    """Tryout already has participants and can no longer be edited."""


class TimingError(TryXpertError):
    """Tryout cannot be started outside its availability window."""


class PersistenceError(TryXpertError):
    """Draft store or backend read/write failed. In-memory state is kept for retry."""


class DataIntegrityError(TryXpertError):
    """Missing or malformed tryout/question records."""
