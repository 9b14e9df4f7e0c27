"""
Work verification gate: the one-time code exchanged on site that moves a
booking from `Arrived` to `In Process`.
"""
import hmac
import logging
import secrets

from . import store
from .clock import utcnow
from .errors import InvalidStateTransition, OtpMismatch
from .notifications import short_id
from .states import BookingStatus

logger = logging.getLogger(__name__)


def generate_otp() -> str:
    # uniform over 100000..999999
    return str(secrets.randbelow(900000) + 100000)


class WorkVerificationGate:
    def __init__(self, sessions, notifier, clock=utcnow, code_factory=generate_otp):
        self.sessions = sessions
        self.notifier = notifier
        self.clock = clock
        self.code_factory = code_factory

    async def mark_arrived(self, booking_id: str):
        """Provider is on site: issue the code and hand it to the requester."""
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                previous = booking.status
                code = self.code_factory()
                await store.compare_and_set(
                    db,
                    booking,
                    BookingStatus.ARRIVED,
                    otp_code=code,
                    otp_verified=False,
                    otp_issued_at=self.clock(),
                )
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s arrived; otp issued", booking_id)
        await self.notifier.transition(
            booking,
            previous,
            [(
                booking.requester_id,
                f"Your service has arrived. Share this OTP with the supplier to start work: {code}",
            )],
        )
        return booking

    async def verify(self, booking_id: str, submitted_code: str):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if booking.status != BookingStatus.ARRIVED:
                    raise InvalidStateTransition(f"Cannot start work while booking is {booking.status}")
                if not booking.otp_code:
                    raise InvalidStateTransition("No OTP has been issued for this booking")
                if not hmac.compare_digest(booking.otp_code.encode(), str(submitted_code or "").encode()):
                    raise OtpMismatch("Invalid OTP. Please try again.")

                previous = booking.status
                await store.compare_and_set(
                    db,
                    booking,
                    BookingStatus.IN_PROCESS,
                    otp_verified=True,
                    work_start_time=self.clock(),
                )
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s otp verified; work started", booking_id)
        messages = [(booking.requester_id, f"Supplier started work for booking #{short_id(booking_id)}.")]
        if booking.provider_id:
            messages.append(
                (booking.provider_id, f"OTP verified. You have started work for booking #{short_id(booking_id)}.")
            )
        await self.notifier.transition(booking, previous, messages)
        return booking
