class JanitorError(Exception):
    """Base exception for all transcript janitor errors."""


class TranscriptReadError(JanitorError):
    """Raised when a conversation log cannot be read from disk."""


class BackupError(JanitorError):
    """Raised when the pre-fix backup of a conversation log cannot be written."""


class TranscriptWriteError(JanitorError):
    """Raised when a fixed conversation log cannot be written back."""
