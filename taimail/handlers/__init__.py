"""Handlers invoked for newly detected messages."""

from .base import MessageHandler
from .callback import CallbackHandler
from .command import CommandHandler

__all__ = ["MessageHandler", "CallbackHandler", "CommandHandler"]
