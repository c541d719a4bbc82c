from datetime import date, datetime

import pytest
from conftest import make_entry, make_task

from task_hierarchy import (
    InvalidDateError,
    ProjectWindow,
    TickStride,
    build_forest,
    parse_date,
    project_forest,
    project_task,
    time_scale_ticks,
)
from task_hierarchy.task_node import ProgressBand

JAN = ProjectWindow(date(2024, 1, 1), date(2024, 1, 10))


def test_window_counts_days_inclusively():
    assert JAN.total_days == 10


def test_task_offset_and_width():
    layout = project_task(make_task("t", start_date="2024-01-03", due_date="2024-01-04"), JAN)
    assert layout.offset_fraction == pytest.approx(0.2)
    assert layout.width_fraction == pytest.approx(0.2)


def test_task_at_window_start_spanning_window():
    layout = project_task(make_task("t", start_date=date(2024, 1, 1), due_date=date(2024, 1, 10)), JAN)
    assert layout.offset_fraction == 0
    assert layout.width_fraction == pytest.approx(1.0)


def test_missing_dates_default_to_window_start_and_next_day():
    layout = project_task(make_task("t"), JAN)
    assert layout.start == date(2024, 1, 1)
    assert layout.end == date(2024, 1, 2)
    assert layout.offset_fraction == 0
    assert layout.width_fraction == pytest.approx(0.2)


def test_due_before_start_still_gets_one_day():
    layout = project_task(make_task("t", start_date="2024-01-05", due_date="2024-01-02"), JAN)
    assert layout.width_fraction == pytest.approx(0.1)


def test_fractions_stay_in_bounds_for_tasks_inside_window():
    tasks = [
        make_task(f"t{day}", start_date=date(2024, 1, day), due_date=date(2024, 1, 10))
        for day in range(1, 11)
    ]
    for layout in project_forest(build_forest(tasks), JAN):
        assert 0 <= layout.offset_fraction <= 1
        assert layout.width_fraction >= 1 / JAN.total_days
        assert layout.offset_fraction + layout.width_fraction <= 1 + 1e-9


def test_project_forest_carries_numbers_levels_and_bands():
    tasks = [
        make_task("p", order=0, estimated_hours=4),
        make_task("c", parent="p", order=0, estimated_hours=10),
    ]
    forest = build_forest(tasks, [make_entry("p", 4), make_entry("c", 6)])
    layouts = project_forest(forest, JAN)

    assert [(layout.task_number, layout.level) for layout in layouts] == [("1", 0), ("1.1", 1)]
    assert layouts[0].band == ProgressBand.COMPLETE
    assert layouts[1].band == ProgressBand.MID


def test_single_day_window():
    window = ProjectWindow.create("2024-03-01", "2024-03-01")
    layout = project_task(make_task("t", start_date="2024-03-01", due_date="2024-03-01"), window)
    assert window.total_days == 1
    assert layout.width_fraction == 1


def test_window_end_falls_back_to_now():
    window = ProjectWindow.create("2024-01-01", now=datetime(2024, 2, 1, 12, 30))
    assert window.end == date(2024, 2, 1)
    assert ProjectWindow.create("2024-01-01").end == date(2024, 1, 1)


def test_inverted_window_is_rejected():
    with pytest.raises(InvalidDateError):
        ProjectWindow.create("2024-02-01", "2024-01-01")


def test_bad_dates_raise():
    with pytest.raises(InvalidDateError):
        parse_date("next tuesday")
    with pytest.raises(InvalidDateError):
        parse_date(42)
    with pytest.raises(InvalidDateError):
        project_task(make_task("t", start_date="2024-13-40"), JAN)


def test_parse_date_accepts_timestamps():
    assert parse_date("2024-01-03T09:30:00Z") == date(2024, 1, 3)
    assert parse_date(datetime(2024, 1, 3, 23, 59)) == date(2024, 1, 3)


def test_weekly_ticks_include_end():
    window = ProjectWindow(date(2024, 1, 1), date(2024, 1, 15))
    assert time_scale_ticks(window) == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]


def test_daily_ticks_cover_every_day():
    assert len(time_scale_ticks(JAN, TickStride.DAY)) == 10


def test_monthly_ticks_clamp_short_months():
    window = ProjectWindow(date(2024, 1, 31), date(2024, 4, 30))
    assert time_scale_ticks(window, TickStride.MONTH) == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
    ]


@pytest.mark.parametrize("text", ["2024-01-03garbage", "2024-01-03 not a date", "2024-01-031", "2024-1-3"])
def test_trailing_text_after_date_is_rejected(text):
    with pytest.raises(InvalidDateError):
        parse_date(text)


def test_parse_date_accepts_offsets_and_padding():
    assert parse_date(" 2024-01-03 ") == date(2024, 1, 3)
    assert parse_date("2024-01-03T23:00:00+02:00") == date(2024, 1, 3)
