"""Clock-string and minute-offset conversions.

Two string forms are used: the 12-hour display form ("7:00 AM") shown to
counselors and students, and the 24-hour storage form ("07:00") written to
the availability table.
"""

from datetime import time

MINUTES_PER_DAY = 24 * 60
DEFAULT_BOUNDARY_MINUTES = 30


def _check_range(minutes: int) -> int:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f'Minute offset {minutes} is outside a single day.')
    return minutes


def to_minutes(value: str | time) -> int:
    """Return minutes since midnight for "7:00 AM", "14:00", "14:00:00" or a ``time``."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    text = value.strip().upper()
    period = None
    if text.endswith('AM') or text.endswith('PM'):
        period = text[-2:]
        text = text[:-2].strip()

    parts = text.split(':')
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise ValueError(f'Unrecognized time value: {value!r}')

    hours, minutes = int(parts[0]), int(parts[1])
    if minutes > 59:
        raise ValueError(f'Unrecognized time value: {value!r}')

    if period is not None:
        if not 1 <= hours <= 12:
            raise ValueError(f'Unrecognized time value: {value!r}')
        if period == 'PM' and hours != 12:
            hours += 12
        elif period == 'AM' and hours == 12:
            hours = 0
    elif hours > 23:
        raise ValueError(f'Unrecognized time value: {value!r}')

    return hours * 60 + minutes


def to_display(minutes: int) -> str:
    _check_range(minutes)
    hours, mins = divmod(minutes, 60)
    period = 'PM' if hours >= 12 else 'AM'
    if hours > 12:
        hours -= 12
    if hours == 0:
        hours = 12
    return f'{hours}:{mins:02d} {period}'


def to_storage(minutes: int) -> str:
    _check_range(minutes)
    hours, mins = divmod(minutes, 60)
    return f'{hours:02d}:{mins:02d}'


def minutes_to_time(minutes: int) -> time:
    _check_range(minutes)
    return time(minutes // 60, minutes % 60)


def round_up_to_boundary(minutes: int, step: int = DEFAULT_BOUNDARY_MINUTES) -> int:
    return -(-minutes // step) * step


def is_on_boundary(minutes: int, step: int = DEFAULT_BOUNDARY_MINUTES) -> bool:
    return minutes % step == 0


def time_options(step: int = DEFAULT_BOUNDARY_MINUTES) -> list[str]:
    return [to_display(minutes) for minutes in range(0, MINUTES_PER_DAY, step)]
