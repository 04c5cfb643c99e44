class ReservationError(Exception):
    """Base class for failures surfaced to the caller.

    `code` is stable and safe to branch on in clients; the message is for humans.
    """

    code = "reservation_error"
    default_message = "reservation request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidSpanError(ReservationError):
    code = "invalid_span"
    default_message = "reservation must cover 1 to 4 hours between 9 and 24"


class OutOfRangeSlotError(ReservationError):
    code = "out_of_range_slot"
    default_message = "slot is outside the daily grid"


class DuplicateDailyReservationError(ReservationError):
    code = "duplicate_daily_reservation"
    default_message = "only one reservation per day is allowed"


class SlotConflictError(ReservationError):
    code = "slot_conflict"
    default_message = "requested hours are already reserved"


class NotFoundError(ReservationError):
    code = "not_found"
    default_message = "reservation not found"


class ForbiddenError(ReservationError):
    code = "forbidden"
    default_message = "reservation belongs to another user"


class InvalidStateError(ReservationError):
    code = "invalid_state"
    default_message = "reservation is not active"


class ExtendTooEarlyError(ReservationError):
    code = "extend_too_early"
    default_message = "extension opens near the end of the reservation"


class SeatNotBookableError(ReservationError):
    code = "seat_not_bookable"
    default_message = "seat is fixed and cannot be reserved"


class ConcurrentModificationError(ReservationError):
    code = "concurrent_modification"
    default_message = "reservation was modified concurrently, please retry"


class StaleReservationError(Exception):
    """Raised when a write lost a race against another writer."""
