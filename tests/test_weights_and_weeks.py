from datetime import date
from types import SimpleNamespace

from freshdock.utils.growing_week import growing_week, week_number, week_start, week_year
from freshdock.utils.weights import compute_totals, line_total_weight


def test_line_weight_prefers_unit_weight():
    assert line_total_weight(60, 13.0, 500.0) == 780.0


def test_line_weight_falls_back_to_stored_weight():
    assert line_total_weight(60, None, 500.0) == 500.0
    assert line_total_weight(60, 0, 500.0) == 500.0


def test_line_weight_unspecified_is_none_not_zero():
    assert line_total_weight(60, None, None) is None
    assert line_total_weight(60, float("nan"), None) is None
    assert line_total_weight(60, None, -5.0) is None


def test_negative_quantity_never_produces_negative_weight():
    assert line_total_weight(-3, 10.0, None) == 0


def test_totals_skip_unspecified_lines():
    items = [
        SimpleNamespace(quantity=60, unit_weight=13.0, weight=None),
        SimpleNamespace(quantity=40, unit_weight=None, weight=None),
        SimpleNamespace(quantity=5, unit_weight=None, weight=22.5),
    ]
    totals = compute_totals(items)
    assert totals.quantity == 105
    assert totals.weight == 802.5


def test_growing_week_one_of_2025_starts_on_thursday_2_january():
    assert week_start(date(2025, 1, 2)) == date(2025, 1, 2)
    assert week_number(date(2025, 1, 2)) == 1
    # Wednesday closes the week
    assert week_number(date(2025, 1, 8)) == 1
    assert week_number(date(2025, 1, 9)) == 2


def test_growing_week_label_and_range():
    week = growing_week(date(2025, 2, 24))
    assert week.start == date(2025, 2, 20)
    assert week.end == date(2025, 2, 26)
    assert week.label == "GW8 · 2025"
    assert len(week.days) == 7
    assert week.days[0].weekday() == 3


def test_week_year_follows_the_thursday():
    # Wednesday 1 Jan 2025 belongs to the week that started in December
    assert week_start(date(2025, 1, 1)) == date(2024, 12, 26)
    assert week_year(date(2025, 1, 1)) == 2024
