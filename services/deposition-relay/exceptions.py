"""Custom exceptions for the deposition-relay service."""

from uuid import UUID


class TranscriptionConnectionError(Exception):
    """Raised when the streaming transcription connection fails or drops."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class TranscriptionSendError(Exception):
    """Raised when an audio frame cannot be forwarded for transcription."""

    def __init__(self, session_id: str | None, cause: Exception | None = None):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Failed to send audio to transcription session '{session_id}'")


class DepositionPersistenceError(Exception):
    """Raised when reading or writing deposition data fails."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Audio deposition {operation} failed")


class AudioDepositionNotFoundError(Exception):
    """Raised when a requested audio deposition does not exist."""

    def __init__(self, deposition_id: UUID):
        self.deposition_id = deposition_id
        super().__init__(f"Audio deposition {deposition_id} not found")


class CaseNotFoundError(Exception):
    """Raised when a referenced case does not exist."""

    def __init__(self, case_id: UUID):
        self.case_id = case_id
        super().__init__(f"Case {case_id} not found")


class AnalysisNotFoundError(Exception):
    """Raised when a deposition has not been analyzed yet."""

    def __init__(self, deposition_id: UUID):
        self.deposition_id = deposition_id
        super().__init__(f"No analysis for audio deposition {deposition_id}")


class SessionAlreadyActiveError(Exception):
    """Raised when a second session is registered for the same deposition."""

    def __init__(self, deposition_id: UUID):
        self.deposition_id = deposition_id
        super().__init__(f"A session is already active for deposition {deposition_id}")


class InvalidAudioFrameError(Exception):
    """Raised when an audio_chunk payload is not a valid PCM frame."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid audio frame: {reason}")


class LLMServiceError(Exception):
    """Raised when LLM service call fails."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class CacheServiceError(Exception):
    """Raised when cache operations fail."""

    def __init__(self, key: str, operation: str, cause: Exception | None = None):
        self.key = key
        self.operation = operation
        self.cause = cause
        super().__init__(f"Cache {operation} failed for key '{key}'")
