"""
Periodic sweep over open bookings: expires requests nobody took before
their start time, nudges requesters whose broadcast has gone unanswered and
reminds both parties the day before confirmed work. Admins get escalating
alerts while a request is still unmatched close to its start, and a
confirmed job whose provider is late to start earns the requester a credit.
"""
import asyncio
import logging
from datetime import datetime, timedelta

from dateutil import parser

from . import store
from .clock import as_utc, utcnow
from .config import (
    ADMIN_ALERT_HOURS,
    DELAY_COMPENSATION_MINUTES,
    EXPIRY_GRACE_MINUTES,
    SEARCH_TIMEOUT_HOURS,
    SWEEP_INTERVAL_SECONDS,
)
from .errors import BookingError
from .notifications import short_id
from .pricing import delay_compensation
from .states import EXPIRABLE, BookingStatus

logger = logging.getLogger(__name__)


def scheduled_start(booking) -> datetime | None:
    try:
        return as_utc(parser.isoparse(f"{booking.date}T{booking.start_time}"))
    except (TypeError, ValueError, OverflowError):
        logger.warning("booking %s has an unparseable schedule %r %r", booking.booking_id, booking.date, booking.start_time)
        return None


class BookingSweeper:
    def __init__(
        self,
        sessions,
        lifecycle,
        notifier,
        clock=utcnow,
        grace_minutes: int = EXPIRY_GRACE_MINUTES,
        search_timeout_hours: int = SEARCH_TIMEOUT_HOURS,
        alert_hours=ADMIN_ALERT_HOURS,
        delay_minutes: int = DELAY_COMPENSATION_MINUTES,
    ):
        self.sessions = sessions
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.clock = clock
        self.grace = timedelta(minutes=grace_minutes)
        self.search_timeout = timedelta(hours=search_timeout_hours)
        self.alert_marks = [timedelta(hours=h) for h in sorted(alert_hours, reverse=True)]
        self.delay = timedelta(minutes=delay_minutes)

    async def sweep(self) -> dict:
        now = self.clock()
        counts = {
            "expired": await self.expire_overdue(now),
            "admin_alerts": await self.alert_admins(now),
            "search_timeouts": await self.flag_search_timeouts(now),
            "reminders": await self.send_reminders(now),
            "delay_compensations": await self.compensate_delays(now),
        }
        if any(counts.values()):
            logger.info("sweep: %s", counts)
        return counts

    async def _open_bookings(self, statuses):
        async with self.sessions() as db:
            return await store.list_bookings(db, statuses=statuses)

    async def expire_overdue(self, now: datetime) -> int:
        expired = 0
        for booking in await self._open_bookings(EXPIRABLE):
            start = scheduled_start(booking)
            if start is None or now <= start + self.grace:
                continue
            try:
                await self.lifecycle.expire(booking.booking_id)
            except BookingError as e:
                # accepted or cancelled since we listed it
                logger.info("skip expiry of %s: %s", booking.booking_id, e.detail)
                continue
            expired += 1
        return expired

    async def flag_search_timeouts(self, now: datetime) -> int:
        flagged = 0
        for booking in await self._open_bookings([BookingStatus.SEARCHING]):
            if booking.search_timeout_notified or not booking.created_at:
                continue
            if now - as_utc(booking.created_at) < self.search_timeout:
                continue
            if not await self._set_flag(booking, search_timeout_notified=True):
                continue
            await self.notifier.notify(
                booking.requester_id,
                f"No supplier has accepted your {booking.item_category} request yet. "
                "You can keep waiting or cancel it.",
            )
            flagged += 1
        return flagged

    async def send_reminders(self, now: datetime) -> int:
        tomorrow = (now + timedelta(days=1)).date().isoformat()
        sent = 0
        for booking in await self._open_bookings([BookingStatus.CONFIRMED]):
            if booking.reminder_sent or booking.date != tomorrow:
                continue
            if not await self._set_flag(booking, reminder_sent=True):
                continue
            text = f"Reminder: booking #{short_id(booking.booking_id)} is scheduled for tomorrow at {booking.start_time}."
            await self.notifier.notify(booking.requester_id, text)
            await self.notifier.notify(booking.provider_id, text)
            if booking.operator_id and booking.operator_id != booking.provider_id:
                await self.notifier.notify(booking.operator_id, text)
            sent += 1
        return sent

    def _due_alert(self, booking, now: datetime) -> int:
        """Number of alert marks the request has passed, 0 once it is past closing."""
        start = scheduled_start(booking)
        if start is None or now >= start + self.grace:
            return 0
        return sum(1 for mark in self.alert_marks if now >= start - mark)

    async def alert_admins(self, now: datetime) -> int:
        sent = 0
        total = len(self.alert_marks)
        for booking in await self._open_bookings(EXPIRABLE):
            due = self._due_alert(booking, now)
            if due <= (booking.admin_alert_count or 0):
                continue
            if not await self._set_flag(booking, admin_alert_count=due, last_admin_alert_time=now):
                continue
            mark = self.alert_marks[due - 1]
            if mark:
                when = f"starts in {_hours(mark)}"
            else:
                when = f"starts NOW and will be closed in {int(self.grace.total_seconds() // 60)} minutes"
            await self.notifier.notify_admins(
                f"ALERT {due}/{total}: booking {booking.booking_id} ({booking.item_category}) {when}! "
                f"Still {booking.status}. Please allot a trusted supplier."
            )
            sent += 1
        return sent

    async def compensate_delays(self, now: datetime) -> int:
        applied = 0
        for booking in await self._open_bookings([BookingStatus.CONFIRMED]):
            if booking.otp_verified or booking.discount_amount is not None:
                continue
            start = scheduled_start(booking)
            if start is None or now - start <= self.delay:
                continue
            credit = delay_compensation(booking.final_price or booking.estimated_price)
            if not await self._set_flag(booking, discount_amount=credit):
                continue
            await self.notifier.notify(
                booking.requester_id,
                f"Supplier delay detected on booking #{short_id(booking.booking_id)}. "
                f"A compensation of ₹{credit:,} has been applied.",
            )
            await self.notifier.notify_admins(
                f"Delay over {int(self.delay.total_seconds() // 60)}m for booking {booking.booking_id}."
            )
            applied += 1
        return applied

    async def _set_flag(self, booking, **values) -> bool:
        try:
            async with self.sessions() as db:
                async with db.begin():
                    await store.compare_and_set(db, booking, **values)
        except BookingError as e:
            logger.info("skip flag %s on %s: %s", list(values), booking.booking_id, e.detail)
            return False
        return True


def _hours(delta: timedelta) -> str:
    hours = int(delta.total_seconds() // 3600)
    return "1 hour" if hours == 1 else f"{hours} hours"


async def sweep_loop(stop_event: asyncio.Event, sweeper: BookingSweeper, interval: float = SWEEP_INTERVAL_SECONDS):
    while not stop_event.is_set():
        try:
            await sweeper.sweep()
        except Exception:
            logger.exception("booking sweep failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue
