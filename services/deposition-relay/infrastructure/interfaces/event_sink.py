"""Abstract interface for pushing events to the recording client."""

from abc import ABC, abstractmethod

from domain.models import ServerEvent


class EventSink(ABC):
    """Outbound half of the session transport."""

    @abstractmethod
    async def send(self, event: ServerEvent) -> None:
        """
        Delivers one event, preserving send order.

        Never raises once the client is gone; the event is dropped instead.
        """
