"""
Handler that forwards each new message to a plain coroutine function.
"""

from typing import Awaitable, Callable

from taimail.core.models import DispatchResult, Message
from taimail.handlers.base import MessageHandler

OnNewMessage = Callable[[Message], Awaitable[DispatchResult | None]]


class CallbackHandler(MessageHandler):
    """Adapts an `on_new_message(message)` coroutine to the handler interface."""

    def __init__(self, on_new_message: OnNewMessage, action: str = "callback_invoked"):
        self.on_new_message = on_new_message
        self.action = action

    async def dispatch(self, message: Message) -> DispatchResult:
        result = await self.on_new_message(message)
        if result is None:
            return DispatchResult(success=True, message_id=message.id, action=self.action)
        return result
