"""
Abstract base class for new-message handlers.
"""

from abc import ABC, abstractmethod

from taimail.core.models import DispatchResult, Message


class MessageHandler(ABC):
    """Capability invoked once per newly detected message."""

    @abstractmethod
    async def dispatch(self, message: Message) -> DispatchResult:
        """
        React to a new message.

        Args:
            message: The message, dispatched in ascending id order

        Returns:
            DispatchResult describing what was done. Raising is allowed;
            the poller logs the error and moves on to the next message.
        """
        pass
