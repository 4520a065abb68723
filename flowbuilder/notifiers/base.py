from abc import ABC, abstractmethod


class Notifier(ABC):
    """
    Outbound delivery capability used by action nodes.
    """

    @abstractmethod
    async def send(self, subject: str, message: str) -> str:
        """
        Deliver ``message`` to ``subject`` and return a delivery id.
        Raises DeliveryError on transport failure.
        """
        pass
