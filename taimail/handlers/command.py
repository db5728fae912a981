"""
Handler that spawns an external agent process for every new message.

The process is expected to pick up the unread message itself (through its
own mail tools) and reply; it only receives the message id, sender and
subject through the environment.
"""

import asyncio
import os
from typing import Sequence

from taimail.config import Settings
from taimail.core.logging import get_logger
from taimail.core.models import DispatchResult, Message
from taimail.handlers.base import MessageHandler

STDOUT_LOG_CHARS = 500
STDERR_LOG_CHARS = 1000


class CommandHandler(MessageHandler):
    """Runs a command once per message, bounded by a timeout."""

    def __init__(
        self,
        command: Sequence[str],
        timeout: float = 300.0,
        env: dict[str, str] | None = None,
        log=None,
    ):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout
        self.env = env or {}
        self.log = log or get_logger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CommandHandler":
        return cls(
            command=settings.handler_command,
            timeout=settings.handler_timeout_seconds,
            log=get_logger(__name__, instance_email=settings.instance_email),
        )

    def _environment(self, message: Message) -> dict[str, str]:
        # The child inherits our environment so it sees the same account config
        return {
            **os.environ,
            **self.env,
            "TAIMAIL_MESSAGE_ID": str(message.id),
            "TAIMAIL_MESSAGE_FROM": message.sender or "",
            "TAIMAIL_MESSAGE_SUBJECT": message.subject or "",
        }

    async def dispatch(self, message: Message) -> DispatchResult:
        self.log.info(
            "command_invoking",
            message_id=message.id,
            sender=message.sender,
            subject=message.subject,
            command=self.command[0],
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(message),
            )
        except OSError as e:
            self.log.error("command_spawn_failed", message_id=message.id, error=str(e))
            return DispatchResult(
                success=False,
                message_id=message.id,
                action="command_failed",
                error=f"Could not start {self.command[0]}: {e}",
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.log.error("command_timed_out", message_id=message.id, timeout=self.timeout)
            return DispatchResult(
                success=False,
                message_id=message.id,
                action="command_timed_out",
                error=f"Command timed out after {self.timeout:g}s",
            )

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")

        if err:
            self.log.warning("command_stderr", message_id=message.id, stderr=err[:STDERR_LOG_CHARS])
        if out:
            self.log.info("command_stdout", message_id=message.id, stdout=out[:STDOUT_LOG_CHARS])

        if process.returncode != 0:
            self.log.error(
                "command_failed",
                message_id=message.id,
                exit_code=process.returncode,
            )
            return DispatchResult(
                success=False,
                message_id=message.id,
                action="command_failed",
                error=f"Command exited with code {process.returncode}",
                details={"exit_code": process.returncode, "stderr": err[:STDERR_LOG_CHARS]},
            )

        self.log.info("command_completed", message_id=message.id, has_stdout=bool(out))
        return DispatchResult(
            success=True,
            message_id=message.id,
            action="command_completed",
            details={"exit_code": 0, "stdout": out[:STDOUT_LOG_CHARS]},
        )
