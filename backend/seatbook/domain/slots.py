from .errors import InvalidSpanError, OutOfRangeSlotError

FIRST_HOUR = 9
LAST_HOUR = 24
SLOT_COUNT = LAST_HOUR - FIRST_HOUR + 1
MAX_SPAN_HOURS = 4
EXTENSION_CHOICES = (1, 2, 3)


def to_hour(slot_index: int) -> int:
    if not 0 <= slot_index < SLOT_COUNT:
        raise OutOfRangeSlotError(f"slot {slot_index} is outside 0..{SLOT_COUNT - 1}")
    return slot_index + FIRST_HOUR


def to_slot(hour: int) -> int:
    if not FIRST_HOUR <= hour <= LAST_HOUR:
        raise OutOfRangeSlotError(f"hour {hour} is outside {FIRST_HOUR}..{LAST_HOUR}")
    return hour - FIRST_HOUR


def span_length(start_hour: int, end_hour: int) -> int:
    return end_hour - start_hour + 1


def validate_span(start_hour: int, end_hour: int) -> int:
    """Check a requested booking span and return its length in hours."""
    for hour in (start_hour, end_hour):
        if not FIRST_HOUR <= hour <= LAST_HOUR:
            raise InvalidSpanError(f"hour {hour} is outside {FIRST_HOUR}..{LAST_HOUR}")
    if start_hour > end_hour:
        raise InvalidSpanError("start hour must not be after end hour")
    length = span_length(start_hour, end_hour)
    if length > MAX_SPAN_HOURS:
        raise InvalidSpanError(f"reservation may not exceed {MAX_SPAN_HOURS} hours")
    return length
