from __future__ import annotations

from abc import ABC, abstractmethod

from models.event import DropEvent


class DropSink(ABC):
    """Delivery target for detected drops.

    The detection pipeline only knows this contract, so a durable
    implementation can replace a best-effort one without touching it.
    Implementations should not raise; the scheduler still isolates each
    sink in case one does.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def deliver(self, event: DropEvent) -> None:
        """Hand one drop event to the sink."""
