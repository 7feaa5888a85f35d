"""Exception types raised inside TubeGuessr."""


class TubeGuessrError(Exception):
    """Base class for all TubeGuessr errors."""


class PersistenceError(TubeGuessrError):
    """A storage backend could not complete an operation."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class PersistenceReadError(PersistenceError):
    """Stored state for a key is unreadable or corrupt."""


class PersistenceWriteError(PersistenceError):
    """Stored state for a key could not be written."""
