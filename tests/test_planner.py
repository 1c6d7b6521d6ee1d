from datetime import date

from lesson_archive import (
    MOVE_DAY,
    MOVE_MONTH,
    build_archive_plan,
    list_day_folders,
    list_month_folders,
    plan_day_to_month,
    plan_month_to_year,
    plan_previous_day,
    plan_previous_month,
)


def test_past_month_days_are_planned_into_their_month(site, make_day):
    make_day("2026-02-18")
    make_day("2026-02-19")

    plan = plan_day_to_month(list_day_folders(site), date(2026, 3, 1))

    assert [(move.kind, move.source.name, move.dest_period) for move in plan] == [
        (MOVE_DAY, "2026-02-18", "2026-02"),
        (MOVE_DAY, "2026-02-19", "2026-02"),
    ]
    assert plan[0].dest_path == site / "2026-02" / "2026-02-18"
    assert plan[1].archived_paths == (
        site / "2026-02" / "2026-02-19",
        site / "2026" / "2026-02" / "2026-02-19",
    )


def test_current_month_is_never_planned(site, make_day):
    for name in ("2026-03-01", "2026-03-15", "2026-03-31"):
        make_day(name)

    assert plan_day_to_month(list_day_folders(site), date(2026, 3, 31)) == []


def test_same_month_of_another_year_is_planned(site, make_day):
    make_day("2025-03-10")
    make_day("2026-03-10")

    plan = plan_day_to_month(list_day_folders(site), date(2026, 3, 20))

    assert [move.source.name for move in plan] == ["2025-03-10"]


def test_day_plan_is_grouped_by_month_then_day(site, make_day):
    for name in ("2026-02-19", "2025-12-31", "2026-01-05", "2026-02-01", "2026-01-02"):
        make_day(name)
    shuffled = list(reversed(list_day_folders(site)))

    plan = plan_day_to_month(shuffled, date(2026, 3, 1))

    assert [move.source.name for move in plan] == [
        "2025-12-31",
        "2026-01-02",
        "2026-01-05",
        "2026-02-01",
        "2026-02-19",
    ]


def test_month_plan_only_covers_past_years(site):
    for name in ("2025-11", "2025-12", "2026-01", "2026-02"):
        (site / name).mkdir()

    plan = plan_month_to_year(list_month_folders(site), 2026)

    assert [(move.kind, move.source.name, move.dest_period) for move in plan] == [
        (MOVE_MONTH, "2025-11", "2025"),
        (MOVE_MONTH, "2025-12", "2025"),
    ]
    assert plan[0].dest_path == site / "2025" / "2025-11"


def test_month_into_year_after_year_change(site):
    (site / "2026-02").mkdir()

    plan = plan_month_to_year(list_month_folders(site), date(2027, 1, 15).year)

    assert len(plan) == 1
    assert plan[0].source == site / "2026-02"
    assert plan[0].dest_path == site / "2026" / "2026-02"


def test_destination_present_is_still_planned(site, make_day):
    make_day("2026-02-19")
    (site / "2026" / "2026-02" / "2026-02-19").mkdir(parents=True)

    plan = plan_day_to_month(list_day_folders(site), date(2026, 10, 19))

    assert [move.source.name for move in plan] == ["2026-02-19"]


def test_previous_day_plan_targets_yesterday_only(site, make_day):
    make_day("2026-02-18")
    make_day("2026-02-19")
    make_day("2026-02-20")

    plan = plan_previous_day(list_day_folders(site), date(2026, 2, 20))

    assert [move.source.name for move in plan] == ["2026-02-19"]
    assert plan[0].dest_path == site / "2026-02" / "2026-02-19"


def test_previous_month_plan_targets_last_month_only(site):
    for name in ("2026-01", "2026-02", "2026-03"):
        (site / name).mkdir()

    plan = plan_previous_month(list_month_folders(site), date(2026, 3, 1))

    assert [(move.source.name, move.dest_period) for move in plan] == [("2026-02", "2026")]


def test_planning_does_not_touch_the_tree(site, make_day, snapshot):
    make_day("2025-12-30")
    make_day("2026-02-19")
    (site / "2025-11").mkdir()
    before = snapshot(site)

    build_archive_plan(site, date(2026, 3, 1))
    build_archive_plan(site, date(2026, 3, 1))

    assert snapshot(site) == before


def test_bulk_plan_includes_months_created_by_day_moves(site, make_day):
    make_day("2025-12-30")
    make_day("2026-02-19")
    (site / "2025-11").mkdir()

    plan = build_archive_plan(site, date(2026, 3, 1))

    assert [(move.kind, move.source.name, move.dest_period) for move in plan] == [
        (MOVE_DAY, "2025-12-30", "2025-12"),
        (MOVE_DAY, "2026-02-19", "2026-02"),
        (MOVE_MONTH, "2025-11", "2025"),
        (MOVE_MONTH, "2025-12", "2025"),
    ]


def test_bulk_plan_resumes_stranded_days_first(site, make_day):
    make_day("2026-01-05", parent=site / "2026-01")
    stranded = site / "2026-01-05"
    stranded.mkdir()
    (stranded / "notes.txt").write_text("left", encoding="utf-8")
    make_day("2026-02-19")

    plan = build_archive_plan(site, date(2026, 3, 1))

    assert [(move.source.name, move.dest_path) for move in plan] == [
        ("2026-01-05", site / "2026-01" / "2026-01-05"),
        ("2026-02-19", site / "2026-02" / "2026-02-19"),
    ]
