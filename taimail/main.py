"""
Live mode: watch the instance mailbox and spawn the agent for new mail.

Run with `python -m taimail.main`; configuration comes from the environment.
"""

import asyncio
import signal
import sys

from taimail.config import Settings, load_settings
from taimail.core.exceptions import TaiMailError, ValidationError
from taimail.core.logging import configure_logging, get_logger
from taimail.handlers.base import MessageHandler
from taimail.handlers.command import CommandHandler
from taimail.poller import MessagePoller
from taimail.services.api_client import MailApiClient

log = get_logger(__name__)


async def run_live(
    settings: Settings,
    stop_event: asyncio.Event | None = None,
    handler: MessageHandler | None = None,
    transport=None,
) -> None:
    """
    Log in, start polling and block until `stop_event` is set.

    SIGINT/SIGTERM set the event when no event is passed in.

    Raises:
        AuthError: If the initial login fails
    """
    live_log = log.bind(instance_email=settings.instance_email)
    live_log.info("live_mode_starting", poll_interval_ms=settings.poll_interval_ms)

    own_signals = stop_event is None
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()

    async with MailApiClient.from_settings(settings, transport=transport) as client:
        # Fail fast on bad credentials instead of logging them every cycle
        await client.login()

        poller = MessagePoller.from_settings(
            settings,
            client,
            handler or CommandHandler.from_settings(settings),
        )

        if own_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, _request_stop, stop_event, sig, live_log)

        try:
            await poller.start()
            await stop_event.wait()
        finally:
            poller.stop()
            if own_signals:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
            live_log.info(
                "live_mode_stopped",
                high_water_mark=poller.last_high_water_mark(),
            )


def _request_stop(stop_event: asyncio.Event, sig: signal.Signals, live_log) -> None:
    live_log.info("shutdown_signal_received", signal=sig.name)
    stop_event.set()


def main() -> int:
    try:
        settings = load_settings()
    except ValidationError as e:
        configure_logging()
        log.error("configuration_invalid", error=str(e))
        return 1

    configure_logging(settings.log_level, json_output=settings.log_json)

    try:
        asyncio.run(run_live(settings))
    except TaiMailError as e:
        log.error("live_mode_failed", error_kind=e.kind, error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
