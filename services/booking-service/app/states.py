import enum

from .errors import InvalidStateTransition


class BookingStatus(str, enum.Enum):
    SEARCHING = "Searching"
    PENDING_CONFIRMATION = "Pending Confirmation"
    AWAITING_OPERATOR = "Awaiting Operator"
    CONFIRMED = "Confirmed"
    ARRIVED = "Arrived"
    IN_PROCESS = "In Process"
    PENDING_PAYMENT = "Pending Payment"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


S = BookingStatus

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    S.SEARCHING: frozenset({S.CONFIRMED, S.AWAITING_OPERATOR, S.CANCELLED, S.EXPIRED}),
    S.PENDING_CONFIRMATION: frozenset({S.CONFIRMED, S.SEARCHING, S.CANCELLED, S.EXPIRED}),
    S.AWAITING_OPERATOR: frozenset({S.CONFIRMED, S.CANCELLED, S.EXPIRED}),
    S.CONFIRMED: frozenset({S.ARRIVED, S.CANCELLED}),
    S.ARRIVED: frozenset({S.IN_PROCESS}),
    S.IN_PROCESS: frozenset({S.PENDING_PAYMENT}),
    S.PENDING_PAYMENT: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.EXPIRED: frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

OPEN_FOR_ACCEPTANCE = frozenset({S.SEARCHING, S.PENDING_CONFIRMATION, S.AWAITING_OPERATOR})
CANCELLABLE = frozenset(s for s, targets in TRANSITIONS.items() if S.CANCELLED in targets)
EXPIRABLE = frozenset(s for s, targets in TRANSITIONS.items() if S.EXPIRED in targets)


def can_transition(current, target) -> bool:
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def assert_transition(current, target) -> BookingStatus:
    """
    Validate `current -> target` against the transition table and return the
    target as a BookingStatus. Raises InvalidStateTransition otherwise.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target not in TRANSITIONS[current]:
        if current in TERMINAL:
            raise InvalidStateTransition(f"Booking is {current.value} and can no longer change")
        raise InvalidStateTransition(f"Cannot move booking from {current.value} to {target.value}")
    return target
