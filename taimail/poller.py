"""
APScheduler-driven mailbox poller.

Turns the stateless message listing into a once-only "new message" stream
by tracking the highest message id seen so far (the high-water-mark).

Each tick is a one-shot job that re-arms itself only after its cycle,
handler dispatch included, has finished, so two cycles of the same poller
never overlap.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from taimail.config import Settings
from taimail.core.exceptions import TaiMailError
from taimail.core.logging import get_logger
from taimail.core.models import Message, MessagesPage, PollerState
from taimail.handlers.base import MessageHandler
from taimail.services.api_client import MailApiClient

JOB_ID = "poll_messages"


class MessagePoller:
    """Polls one mailbox and dispatches each new message exactly once."""

    def __init__(
        self,
        client: MailApiClient,
        handler: MessageHandler,
        prefix: str,
        interval: timedelta = timedelta(seconds=5),
        page_size: int = 10,
        max_pages: int = 10,
        dispatch_backlog: bool = True,
        log=None,
    ):
        self.client = client
        self.handler = handler
        self.prefix = prefix
        self.interval = interval
        self.page_size = page_size
        self.max_pages = max_pages
        self.dispatch_backlog = dispatch_backlog
        self.log = log or get_logger(__name__, prefix=prefix)

        self.state = PollerState()
        self._scheduler: AsyncIOScheduler | None = None
        self._cycle: asyncio.Future | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: MailApiClient,
        handler: MessageHandler,
    ) -> "MessagePoller":
        return cls(
            client=client,
            handler=handler,
            prefix=settings.instance,
            interval=settings.poll_interval,
            page_size=settings.poll_page_size,
            max_pages=settings.poll_max_pages,
            dispatch_backlog=settings.poll_dispatch_backlog,
            log=get_logger(__name__, instance_email=settings.instance_email),
        )

    def is_running(self) -> bool:
        return self.state.running

    def last_high_water_mark(self) -> int | None:
        return self.state.high_water_mark

    @property
    def scheduler(self) -> AsyncIOScheduler | None:
        """The scheduler holding the next tick, while running."""
        return self._scheduler

    async def start(self) -> None:
        """
        Run one poll cycle now, then keep polling every `interval`.

        Calling this while already running logs a warning and returns.
        """
        if self.state.running:
            self.log.warning("poller_already_running")
            return

        self.state.running = True
        self.log.info(
            "poller_starting",
            interval_ms=int(self.interval.total_seconds() * 1000),
            page_size=self.page_size,
            dispatch_backlog=self.dispatch_backlog,
        )

        # A cycle left over from before a stop() must settle first
        if self._cycle is not None and not self._cycle.done():
            await asyncio.shield(self._cycle)

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
            self._scheduler.start()

        await self._tick("initial_check")

    def stop(self) -> None:
        """Stop scheduling cycles. A cycle already in flight is left to finish."""
        if not self.state.running:
            return

        self.state.running = False
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self.log.info("poller_stopped", high_water_mark=self.state.high_water_mark)

    async def poll_once(self) -> list[Message]:
        """
        Run one poll cycle.

        Errors from the API propagate; the scheduled ticks catch them. A
        backlog deeper than `page_size * max_pages` is scanned over several
        cycles: nothing is dispatched and the mark stays put until the scan
        reaches already-seen ids or the end of the listing.

        Returns:
            The messages dispatched in this cycle, in ascending id order
        """
        mark = self.state.high_water_mark
        priming = mark is None and not self.dispatch_backlog

        if priming:
            page = await self._fetch_page(offset=0)
            if page.messages:
                self.state.high_water_mark = max(m.id for m in page.messages)
                self.log.info(
                    "high_water_mark_primed",
                    high_water_mark=self.state.high_water_mark,
                    skipped=len(page.messages),
                )
            return []

        fetched = await self._fetch_unseen(mark)
        if fetched is None:
            return []
        if not fetched:
            self.log.debug("no_unread_messages")
            return []

        # Over everything fetched, so a page of old messages never lowers the mark
        highest = max(m.id for m in fetched)
        self.state.high_water_mark = highest if mark is None else max(mark, highest)

        new = sorted((m for m in fetched if mark is None or m.id > mark), key=lambda m: m.id)
        if not new:
            self.log.debug("no_new_messages", high_water_mark=self.state.high_water_mark)
            return []

        self.log.info(
            "new_messages_detected",
            count=len(new),
            high_water_mark=self.state.high_water_mark,
        )
        for message in new:
            await self._dispatch(message)
        return new

    async def _fetch_page(self, offset: int) -> MessagesPage:
        return await self.client.fetch_messages(
            prefix=self.prefix,
            show_read=False,
            limit=self.page_size,
            offset=offset,
        )

    async def _fetch_unseen(self, mark: int | None) -> list[Message] | None:
        """
        Fetch pages (newest first) until one reaches already-seen ids.

        Progress is kept on `state`, so a scan cut off by `max_pages` (or by
        an error) resumes at the same offset next cycle. Messages arriving
        meanwhile shift the listing down, which only re-reads entries.

        Returns:
            Every unseen message once the scan is complete, or None while
            it still has pages left
        """
        state = self.state
        for _ in range(self.max_pages):
            page = await self._fetch_page(state.scan_offset)
            for message in page.messages:
                state.scan_pending[message.id] = message

            reached_mark = mark is not None and any(m.id <= mark for m in page.messages)
            if not page.has_more or not page.messages or reached_mark:
                fetched = list(state.scan_pending.values())
                state.scan_offset = 0
                state.scan_pending = {}
                return fetched
            state.scan_offset += len(page.messages)

        self.log.warning(
            "backlog_scan_incomplete",
            pages=self.max_pages,
            resume_offset=state.scan_offset,
            pending=len(state.scan_pending),
        )
        return None

    async def _dispatch(self, message: Message) -> None:
        try:
            result = await self.handler.dispatch(message)
        except Exception as e:
            self.log.exception(
                "message_dispatch_error",
                message_id=message.id,
                error_kind=type(e).__name__,
                error=str(e),
            )
            return

        if result.success:
            self.log.info("message_dispatched", message_id=message.id, action=result.action)
        else:
            self.log.error(
                "message_dispatch_failed",
                message_id=message.id,
                action=result.action,
                error=result.error,
            )

    async def _run_cycle(self, operation: str) -> list[Message]:
        started = datetime.now(timezone.utc)
        try:
            return await self.poll_once()
        except TaiMailError as e:
            self.log.error(
                "poll_cycle_failed",
                operation=operation,
                timestamp=started.isoformat(),
                error_kind=e.kind,
                error=str(e),
                running=self.state.running,
            )
        except Exception as e:
            self.log.exception(
                "poll_cycle_error",
                operation=operation,
                timestamp=started.isoformat(),
                error_kind=type(e).__name__,
                error=str(e),
                running=self.state.running,
            )
        return []

    async def _tick(self, operation: str = "scheduled_check") -> None:
        # The scheduler's shutdown is deferred to the loop, so a due job can still fire
        if not self.state.running:
            return
        # Shielded so a scheduler shutdown cannot cancel a cycle half way
        self._cycle = asyncio.ensure_future(self._run_cycle(operation))
        await asyncio.shield(self._cycle)
        self._arm()

    def _arm(self) -> None:
        """Schedule the next tick, if still running."""
        if not self.state.running or self._scheduler is None:
            return

        self._scheduler.add_job(
            self._tick,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc) + self.interval),
            id=JOB_ID,
            name="Poll mailbox for new messages",
            replace_existing=True,
            misfire_grace_time=None,
        )
