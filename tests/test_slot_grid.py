import pytest

from app.services.slot_service import PERIODS, all_slot_labels, generate_slots, period_slots, slot_sort_key


def test_morning_grid():
    slots = generate_slots(8, 12)

    assert len(slots) == 16
    assert slots[0] == "08:00 AM - 08:15 AM"
    assert slots[-1] == "11:45 AM - 12:00 PM"


@pytest.mark.parametrize("start,end", [(0, 1), (8, 12), (12, 18), (18, 22), (0, 24), (23, 24)])
def test_grid_size_and_order(start, end):
    slots = generate_slots(start, end)

    assert len(slots) == (end - start) * 4
    assert len(set(slots)) == len(slots)
    # Each slot starts where the previous one ended
    for previous, current in zip(slots, slots[1:]):
        assert previous.split(" - ")[1] == current.split(" - ")[0]


def test_grid_crosses_noon_and_midnight():
    assert generate_slots(12, 13)[0] == "12:00 PM - 12:15 PM"
    assert generate_slots(0, 1)[0] == "12:00 AM - 12:15 AM"
    assert generate_slots(23, 24)[-1] == "11:45 PM - 12:00 AM"


def test_grid_is_deterministic():
    assert generate_slots(18, 22) == generate_slots(18, 22)


@pytest.mark.parametrize("start,end", [(-1, 4), (8, 8), (12, 8), (20, 25)])
def test_invalid_bounds_rejected(start, end):
    with pytest.raises(ValueError):
        generate_slots(start, end)


def test_named_periods():
    assert PERIODS == {"morning": (8, 12), "evening": (12, 18), "night": (18, 22)}
    assert len(period_slots("evening")) == 24
    assert period_slots("night")[-1] == "09:45 PM - 10:00 PM"

    with pytest.raises(ValueError):
        period_slots("afternoon")


def test_slot_sort_key_follows_time():
    labels = all_slot_labels()
    shuffled = list(reversed(labels))

    assert sorted(shuffled, key=slot_sort_key) == labels
    assert slot_sort_key("not a slot") == len(labels)
