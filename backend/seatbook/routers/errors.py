import logging

from fastapi import HTTPException, status

from ..domain.errors import (
    ConcurrentModificationError,
    DuplicateDailyReservationError,
    ExtendTooEarlyError,
    ForbiddenError,
    InvalidSpanError,
    InvalidStateError,
    NotFoundError,
    OutOfRangeSlotError,
    ReservationError,
    SeatNotBookableError,
    SlotConflictError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ReservationError], int] = {
    InvalidSpanError: status.HTTP_400_BAD_REQUEST,
    OutOfRangeSlotError: status.HTTP_400_BAD_REQUEST,
    DuplicateDailyReservationError: status.HTTP_409_CONFLICT,
    SlotConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_400_BAD_REQUEST,
    ExtendTooEarlyError: status.HTTP_400_BAD_REQUEST,
    SeatNotBookableError: status.HTTP_409_CONFLICT,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
}


def to_http_exception(exc: ReservationError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info("rejected with %s (%d): %s", exc.code, status_code, exc.message)
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


def invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "invalid_credentials", "message": "password does not match"},
    )


def audit_failure(exc: RuntimeError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "audit_failed", "message": str(exc)},
    )
