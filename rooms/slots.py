import re
from dataclasses import dataclass

HOURS_PER_DAY = 24

_HOUR_VALUE_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*(AM|PM)?\s*$', re.IGNORECASE)


@dataclass(frozen=True)
class TimeSlot:
    """Один часовой слот суток"""
    hour: int
    value: str
    label: str


def hour_value(hour):
    """14 -> '14:00'"""
    _check_hour(hour)
    return f"{hour:02d}:00"


def hour_label(hour):
    """14 -> '2:00 PM', 0 -> '12:00 AM'"""
    _check_hour(hour)
    suffix = 'AM' if hour < 12 else 'PM'
    display_hour = hour % 12 or 12
    return f"{display_hour}:00 {suffix}"


def parse_hour(value):
    """
    Переводит час в int 0..23.
    Принимает int, '14:00', '2:00 PM', '02:00 pm'
    :raises ValueError: значение не является часом суток
    """
    if isinstance(value, bool):
        raise ValueError(f"Некорректный час: {value!r}")
    if isinstance(value, int):
        _check_hour(value)
        return value
    if not isinstance(value, str):
        raise ValueError(f"Некорректный час: {value!r}")

    match = _HOUR_VALUE_RE.match(value)
    if not match:
        raise ValueError(f"Некорректный час: {value!r}")

    hour, minutes, suffix = int(match.group(1)), int(match.group(2)), match.group(3)
    if minutes != 0:
        raise ValueError(f"Слот должен начинаться в начале часа: {value!r}")

    if suffix:
        if not 1 <= hour <= 12:
            raise ValueError(f"Некорректный час: {value!r}")
        hour = hour % 12
        if suffix.upper() == 'PM':
            hour += 12

    _check_hour(hour)
    return hour


def generate_slots():
    """
    Сетка из 24 часовых слотов на сутки
    """
    return [
        TimeSlot(hour=hour, value=hour_value(hour), label=hour_label(hour))
        for hour in range(HOURS_PER_DAY)
    ]


def _check_hour(hour):
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour < HOURS_PER_DAY:
        raise ValueError(f"Час должен быть в диапазоне 0..23: {hour!r}")
