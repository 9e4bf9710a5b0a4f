"""Domain Gateway - Message bus publisher."""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class IMessageBus(ABC):
    """Interface for publishing raw history events."""

    @abstractmethod
    async def publish(
        self, topic: str, payload: Mapping[str, Any], properties: Mapping[str, str]
    ) -> None:
        """
        Publish one message with routing properties.

        Raises:
            MessageBusError: When the broker does not accept the message
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the broker connection."""
