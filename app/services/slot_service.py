from datetime import datetime, timedelta
from typing import Dict, List, Tuple

SLOT_MINUTES = 15

# Fixed product periods: [start_hour, end_hour)
PERIODS: Dict[str, Tuple[int, int]] = {
    "morning": (8, 12),
    "evening": (12, 18),
    "night": (18, 22),
}


def _fmt(dt: datetime) -> str:
    return dt.strftime("%I:%M %p")


def generate_slots(start_hour: int, end_hour: int) -> List[str]:
    """
    Builds the 15-minute slot labels for [start_hour:00, end_hour:00),
    e.g. generate_slots(8, 9) -> ["08:00 AM - 08:15 AM", ..., "08:45 AM - 09:00 AM"].
    """
    if not (0 <= start_hour < end_hour <= 24):
        raise ValueError(f"Invalid period bounds: {start_hour}..{end_hour}")

    step = timedelta(minutes=SLOT_MINUTES)
    current = datetime(2000, 1, 1) + timedelta(hours=start_hour)
    end = datetime(2000, 1, 1) + timedelta(hours=end_hour)

    slots = []
    while current < end:
        slots.append(f"{_fmt(current)} - {_fmt(current + step)}")
        current += step
    return slots


def period_slots(period: str) -> List[str]:
    if period not in PERIODS:
        raise ValueError(f"Unknown period '{period}'. Expected one of: {', '.join(PERIODS)}")
    return generate_slots(*PERIODS[period])


def all_slot_labels() -> List[str]:
    labels = []
    for start, end in PERIODS.values():
        labels.extend(generate_slots(start, end))
    return labels


_SLOT_ORDER = {label: index for index, label in enumerate(all_slot_labels())}


def slot_sort_key(label: str) -> int:
    # Unknown labels sort last
    return _SLOT_ORDER.get(label, len(_SLOT_ORDER))
