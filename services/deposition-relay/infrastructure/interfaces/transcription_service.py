"""Abstract interface for streaming transcription backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from domain.models import StreamingConfig, TranscriptEvent


class TranscriptionConnection(ABC):
    """One live transcription session with the provider."""

    session_id: str | None = None

    @abstractmethod
    async def send(self, frame: bytes) -> None:
        """
        Forwards one PCM frame.

        Raises:
            TranscriptionSendError: If the frame could not be sent.
        """

    @abstractmethod
    def events(self) -> AsyncIterator[TranscriptEvent]:
        """
        Returns the transcript events of this connection, in provider order.

        The iterator is lazy, unbounded and can be consumed only once. It ends
        when the connection is closed and raises TranscriptionConnectionError
        when the provider reports an unrecoverable error.
        """

    @abstractmethod
    async def close(self) -> None:
        """Terminates the provider session. Safe to call more than once."""


class TranscriptionService(ABC):
    """Factory of streaming transcription connections."""

    @abstractmethod
    async def connect(self, config: StreamingConfig) -> TranscriptionConnection:
        """
        Opens a streaming session.

        Raises:
            TranscriptionConnectionError: If the session cannot be opened.
        """
