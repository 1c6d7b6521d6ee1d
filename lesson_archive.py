#!/usr/bin/env python3
"""Roll daily lesson folders up into month and year folders and rebuild index pages."""

import argparse
import calendar
import html
import logging
import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import NamedTuple

from bs4 import BeautifulSoup

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s", stream=sys.stdout)

DAY_NAME_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
MONTH_NAME_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}")
YEAR_NAME_PATTERN = re.compile(r"[0-9]{4}")

MOVE_DAY = "day"
MOVE_MONTH = "month"

OUTCOME_MOVED = "moved"
OUTCOME_SKIPPED = "skipped"
OUTCOME_MISSING = "missing"

REGION_START_TEMPLATE = "<!-- lesson-archive:{name}:start -->"
REGION_END_TEMPLATE = "<!-- lesson-archive:{name}:end -->"


def get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.warning("Invalid integer for %s=%s, using default=%d", name, value, default)
        return default


DEFAULT_ROOT = os.getenv("LESSON_ARCHIVE_ROOT", ".")
ARTIFACT_NAME = os.getenv("LESSON_ARTIFACT", "lesson.html")
INDEX_NAME = os.getenv("INDEX_DOCUMENT", "index.html")
RECENT_LESSONS_LIMIT = max(1, get_int_env("RECENT_LESSONS_LIMIT", 7))


class GeneratedRegionError(RuntimeError):
    """A document's generated-region markers are missing, unpaired or duplicated."""


# Folder names


class YearKey(NamedTuple):
    year: int

    @property
    def name(self) -> str:
        return format_year(self)


class MonthKey(NamedTuple):
    year: int
    month: int

    @property
    def name(self) -> str:
        return format_month(self)

    @property
    def year_key(self) -> YearKey:
        return YearKey(self.year)


class DayKey(NamedTuple):
    year: int
    month: int
    day: int

    @classmethod
    def from_date(cls, day: date) -> "DayKey":
        return cls(day.year, day.month, day.day)

    @property
    def name(self) -> str:
        return format_day(self)

    @property
    def month_key(self) -> MonthKey:
        return MonthKey(self.year, self.month)

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)


def parse_day(name: str) -> DayKey | None:
    """Parse a YYYY-MM-DD folder name. Returns None for anything that is not a real calendar day."""
    if not DAY_NAME_PATTERN.fullmatch(name):
        return None
    year, month, day = (int(part) for part in name.split("-"))
    try:
        date(year, month, day)
    except ValueError:
        return None
    return DayKey(year, month, day)


def parse_month(name: str) -> MonthKey | None:
    """Parse a YYYY-MM folder name. Returns None on malformed or out-of-range names."""
    if not MONTH_NAME_PATTERN.fullmatch(name):
        return None
    year, month = (int(part) for part in name.split("-"))
    try:
        date(year, month, 1)
    except ValueError:
        return None
    return MonthKey(year, month)


def parse_year(name: str) -> YearKey | None:
    """Parse a YYYY folder name. Year 0000 is rejected."""
    if not YEAR_NAME_PATTERN.fullmatch(name):
        return None
    year = int(name)
    if year < 1:
        return None
    return YearKey(year)


def format_day(key: DayKey) -> str:
    return f"{key.year:04d}-{key.month:02d}-{key.day:02d}"


def format_month(key: MonthKey) -> str:
    return f"{key.year:04d}-{key.month:02d}"


def format_year(key: YearKey) -> str:
    return f"{key.year:04d}"


def parse_reference_date(value: str) -> date:
    """Parse a --date argument, raising ValueError with a readable message."""
    key = parse_day(value.strip()) if value else None
    if key is None:
        raise ValueError(f"Invalid --date value {value!r}; expected YYYY-MM-DD")
    return key.to_date()


def previous_day(reference_date: date) -> DayKey:
    """The day before the reference date ("yesterday")."""
    return DayKey.from_date(reference_date - timedelta(days=1))


def previous_month(reference_date: date) -> MonthKey:
    """The month before the reference date's month ("last month")."""
    if reference_date.month == 1:
        return MonthKey(reference_date.year - 1, 12)
    return MonthKey(reference_date.year, reference_date.month - 1)


def day_archive_paths(root: Path, key: DayKey) -> tuple[Path, Path]:
    """Locations where a day counts as archived: under its month, and under its month under its year."""
    month_name = key.month_key.name
    return root / month_name / key.name, root / key.month_key.year_key.name / month_name / key.name


# Tree scanning


class DayFolder(NamedTuple):
    key: DayKey
    path: Path

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def artifact(self) -> Path:
        return self.path / ARTIFACT_NAME


class MonthFolder(NamedTuple):
    key: MonthKey
    path: Path

    @property
    def name(self) -> str:
        return self.key.name


class YearFolder(NamedTuple):
    key: YearKey
    path: Path

    @property
    def name(self) -> str:
        return self.key.name


def _list_named_dirs(root: Path, parse) -> list[tuple]:
    """Return (key, path) for immediate subdirectories of root whose name parses, sorted by key."""
    if not root.is_dir():
        return []

    found = []
    for child in root.iterdir():
        if not child.is_dir():
            continue
        key = parse(child.name)
        if key is not None:
            found.append((key, child))

    found.sort(key=lambda item: item[0])
    return found


def list_day_folders(root: Path) -> list[DayFolder]:
    """List day folders directly under root that hold the lesson artifact."""
    return [
        DayFolder(key, path)
        for key, path in _list_named_dirs(root, parse_day)
        if (path / ARTIFACT_NAME).is_file()
    ]


def list_month_folders(root: Path) -> list[MonthFolder]:
    """List month folders directly under root."""
    return [MonthFolder(key, path) for key, path in _list_named_dirs(root, parse_month)]


def list_year_folders(root: Path) -> list[YearFolder]:
    """List year folders directly under root."""
    return [YearFolder(key, path) for key, path in _list_named_dirs(root, parse_year)]


def list_stranded_day_folders(root: Path) -> list[tuple[DayFolder, Path]]:
    """Find root day folders left behind by an interrupted move.

    A stranded folder has lost its artifact while an archived copy of the day
    already holds one. Returns (stranded folder, archived folder) pairs.
    """
    stranded = []
    for key, path in _list_named_dirs(root, parse_day):
        if (path / ARTIFACT_NAME).exists():
            continue
        for archived in day_archive_paths(root, key):
            if (archived / ARTIFACT_NAME).is_file():
                stranded.append((DayFolder(key, path), archived))
                break
    return stranded


@dataclass
class ArchiveTree:
    """Every date folder known under a root, at whatever level it currently lives."""

    root: Path
    days: list[DayFolder]
    months: list[MonthFolder]
    years: list[YearFolder]

    def days_by_month(self) -> dict[MonthKey, list[DayFolder]]:
        grouped: dict[MonthKey, list[DayFolder]] = {}
        for day in self.days:
            grouped.setdefault(day.key.month_key, []).append(day)
        return grouped

    def months_by_year(self) -> dict[YearKey, list[MonthFolder]]:
        unique: dict[MonthKey, MonthFolder] = {}
        for month in self.months:
            unique.setdefault(month.key, month)
        grouped: dict[YearKey, list[MonthFolder]] = {}
        for key in sorted(unique):
            grouped.setdefault(key.year_key, []).append(unique[key])
        return grouped

    def days_by_year_and_month(self) -> dict[YearKey, dict[MonthKey, list[DayFolder]]]:
        grouped: dict[YearKey, dict[MonthKey, list[DayFolder]]] = {}
        for day in self.days:
            months = grouped.setdefault(day.key.month_key.year_key, {})
            months.setdefault(day.key.month_key, []).append(day)
        return grouped


def scan_tree(root: Path) -> ArchiveTree:
    """Scan root, its month and year folders, and the month folders inside each year."""
    years = list_year_folders(root)

    # Archived copies first so they win over a stray root copy of the same period.
    months: list[MonthFolder] = []
    for year in years:
        months.extend(month for month in list_month_folders(year.path) if month.key.year_key == year.key)
    months.extend(list_month_folders(root))

    days_by_key: dict[DayKey, DayFolder] = {}
    for month in months:
        for day in list_day_folders(month.path):
            if day.key.month_key == month.key:
                days_by_key.setdefault(day.key, day)
    for day in list_day_folders(root):
        days_by_key.setdefault(day.key, day)

    days = [days_by_key[key] for key in sorted(days_by_key)]
    months.sort(key=lambda month: (month.key, -len(month.path.parts)))
    return ArchiveTree(root=root, days=days, months=months, years=years)


# Planning


class PlannedMove(NamedTuple):
    kind: str
    source: Path
    dest_period: str
    dest_path: Path
    archived_paths: tuple[Path, ...]


def _day_move(folder: DayFolder) -> PlannedMove:
    archived_paths = day_archive_paths(folder.path.parent, folder.key)
    return PlannedMove(MOVE_DAY, folder.path, folder.key.month_key.name, archived_paths[0], archived_paths)


def _month_move(folder: MonthFolder) -> PlannedMove:
    year_name = folder.key.year_key.name
    dest_path = folder.path.parent / year_name / folder.name
    return PlannedMove(MOVE_MONTH, folder.path, year_name, dest_path, (dest_path,))


def plan_day_to_month(day_folders: list[DayFolder], reference_date: date) -> list[PlannedMove]:
    """Plan every day folder outside the reference month into its month folder.

    Moves come out ordered by month, then by day.
    """
    current_month = DayKey.from_date(reference_date).month_key
    eligible = [folder for folder in day_folders if folder.key.month_key != current_month]
    eligible.sort(key=lambda folder: folder.key)
    return [_day_move(folder) for folder in eligible]


def plan_month_to_year(month_folders: list[MonthFolder], reference_year: int) -> list[PlannedMove]:
    """Plan every month folder of a year before reference_year into its year folder."""
    eligible = [folder for folder in month_folders if folder.key.year < reference_year]
    eligible.sort(key=lambda folder: folder.key)
    return [_month_move(folder) for folder in eligible]


def plan_previous_day(day_folders: list[DayFolder], reference_date: date) -> list[PlannedMove]:
    """Plan only yesterday's folder into its month folder."""
    target = previous_day(reference_date)
    return [_day_move(folder) for folder in day_folders if folder.key == target]


def plan_previous_month(month_folders: list[MonthFolder], reference_date: date) -> list[PlannedMove]:
    """Plan only last month's folder into its year folder."""
    target = previous_month(reference_date)
    return [_month_move(folder) for folder in month_folders if folder.key == target]


def plan_resume(stranded: list[tuple[DayFolder, Path]]) -> list[PlannedMove]:
    """Plan moves that finish interrupted day moves into the folder already holding the artifact."""
    return [
        PlannedMove(MOVE_DAY, folder.path, archived.parent.name, archived, (archived,))
        for folder, archived in stranded
    ]


def build_archive_plan(root: Path, reference_date: date) -> list[PlannedMove]:
    """Scan root and plan the full roll-up: resumes, then day moves, then month moves.

    Month folders that the day moves will create are planned too, so a dry run
    reports the same moves as a live run.
    """
    day_moves = plan_day_to_month(list_day_folders(root), reference_date)

    month_folders = {folder.key: folder for folder in list_month_folders(root)}
    for move in day_moves:
        month_key = parse_month(move.dest_period)
        month_folders.setdefault(month_key, MonthFolder(month_key, move.dest_path.parent))

    month_moves = plan_month_to_year(list(month_folders.values()), reference_date.year)
    return plan_resume(list_stranded_day_folders(root)) + day_moves + month_moves


# Execution


@dataclass
class ArchiveSummary:
    moved: int = 0
    skipped: int = 0
    missing: int = 0
    per_period: dict[str, int] = field(default_factory=dict)

    def record(self, move: PlannedMove, outcome: str) -> None:
        if outcome == OUTCOME_MOVED:
            self.moved += 1
            self.per_period[move.dest_period] = self.per_period.get(move.dest_period, 0) + 1
        elif outcome == OUTCOME_SKIPPED:
            self.skipped += 1
        else:
            self.missing += 1

    @property
    def months(self) -> dict[str, int]:
        return {name: count for name, count in self.per_period.items() if parse_month(name)}

    @property
    def years(self) -> dict[str, int]:
        return {name: count for name, count in self.per_period.items() if parse_year(name)}


def _display(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def _ensure_folder(folder: Path, dry_run: bool, prepared: set[Path]) -> None:
    """Create folder on first need; in a dry run only remember and report it."""
    if folder in prepared or folder.is_dir():
        return
    prepared.add(folder)
    if dry_run:
        logging.info("  Would create: %s/", folder.name)
        return
    folder.mkdir(parents=True, exist_ok=True)
    logging.info("  Created: %s/", folder.name)


def _move_entry(source: Path, target: Path, root: Path, dry_run: bool) -> None:
    if dry_run:
        logging.info("  Would move: %s -> %s", _display(source, root), _display(target, root))
        return
    shutil.move(str(source), str(target))
    logging.info("  Moved: %s -> %s", _display(source, root), _display(target, root))


def _find_archived_copy(move: PlannedMove) -> Path | None:
    """Return where this day is already archived, if anywhere.

    The destination itself only counts once it holds the artifact; an empty
    shell left by an interrupted run is reused. Any other archive location
    counts as soon as it exists.
    """
    for path in move.archived_paths:
        if path == move.dest_path:
            if (path / ARTIFACT_NAME).is_file():
                return path
        elif path.exists():
            return path
    return None


def _execute_day_move(move: PlannedMove, dry_run: bool, prepared: set[Path]) -> str:
    if not move.source.is_dir():
        logging.info("Nothing to archive: %s/ no longer exists", move.source.name)
        return OUTCOME_MISSING

    source_artifact = move.source / ARTIFACT_NAME

    if source_artifact.is_file():
        archived = _find_archived_copy(move)
        if archived is not None:
            logging.info(
                "Skipped: %s/ (already exists in %s/)",
                move.source.name,
                _display(archived.parent, move.source.parent),
            )
            return OUTCOME_SKIPPED

        logging.info("%sArchiving %s/ into %s/", "[DRY RUN] " if dry_run else "", move.source.name, move.dest_period)
        _ensure_folder(move.dest_path.parent, dry_run, prepared)
        if not dry_run:
            move.dest_path.mkdir(exist_ok=True)
        _move_entry(source_artifact, move.dest_path / ARTIFACT_NAME, move.source.parent, dry_run)
    elif (move.dest_path / ARTIFACT_NAME).is_file():
        logging.info("%sResuming %s/ into %s/", "[DRY RUN] " if dry_run else "", move.source.name, move.dest_period)
    else:
        logging.info("Nothing to archive: %s/ has no %s", move.source.name, ARTIFACT_NAME)
        return OUTCOME_MISSING

    leftovers = 0
    for entry in sorted(move.source.iterdir()):
        if entry.name == ARTIFACT_NAME:
            continue
        target = move.dest_path / entry.name
        if target.exists():
            logging.warning(
                "  Left in place: %s (already exists in %s/)",
                _display(entry, move.source.parent),
                _display(move.dest_path, move.source.parent),
            )
            leftovers += 1
            continue
        _move_entry(entry, target, move.source.parent, dry_run)

    if dry_run:
        return OUTCOME_MOVED

    if leftovers:
        logging.warning("  Kept %s/ with %d entries that could not be moved", move.source.name, leftovers)
    else:
        move.source.rmdir()
        logging.info("  Removed empty: %s/", move.source.name)
    return OUTCOME_MOVED


def _execute_month_move(move: PlannedMove, dry_run: bool, prepared: set[Path]) -> str:
    # In a dry run, a folder that an earlier move would have created counts as present.
    if not (move.source.is_dir() or (dry_run and move.source in prepared)):
        logging.info("Nothing to archive: %s/ no longer exists", move.source.name)
        return OUTCOME_MISSING

    if any(path.exists() for path in move.archived_paths):
        logging.info("Skipped: %s/ (already exists in %s/)", move.source.name, move.dest_period)
        return OUTCOME_SKIPPED

    logging.info("%sArchiving %s/ into %s/", "[DRY RUN] " if dry_run else "", move.source.name, move.dest_period)
    _ensure_folder(move.dest_path.parent, dry_run, prepared)
    _move_entry(move.source, move.dest_path, move.source.parent, dry_run)
    return OUTCOME_MOVED


def execute(plan: list[PlannedMove], dry_run: bool = False) -> ArchiveSummary:
    """Carry out a plan in order. Filesystem errors propagate and abort the run."""
    summary = ArchiveSummary()
    prepared: set[Path] = set()

    for move in plan:
        if move.kind == MOVE_DAY:
            outcome = _execute_day_move(move, dry_run, prepared)
        elif move.kind == MOVE_MONTH:
            outcome = _execute_month_move(move, dry_run, prepared)
        else:
            raise ValueError(f"Unknown move kind: {move.kind}")
        summary.record(move, outcome)

    return summary


# Index documents


def normalize_text(value: str) -> str:
    """Normalize whitespace in text."""
    if not value:
        return ""
    return " ".join(value.split())


def region_markers(name: str) -> tuple[str, str]:
    return REGION_START_TEMPLATE.format(name=name), REGION_END_TEMPLATE.format(name=name)


def replace_region(document: str, name: str, body: str, required: bool = True) -> str:
    """Overwrite the generated region called name, keeping everything around it.

    An optional region that has neither marker is left alone. Any other
    deviation from exactly one start marker followed by one end marker raises
    GeneratedRegionError.
    """
    start_marker, end_marker = region_markers(name)
    starts = document.count(start_marker)
    ends = document.count(end_marker)

    if starts == 0 and ends == 0 and not required:
        return document
    if starts != 1 or ends != 1:
        raise GeneratedRegionError(
            f"expected one {start_marker} ... {end_marker} pair, found {starts} start and {ends} end markers"
        )

    start = document.index(start_marker) + len(start_marker)
    end = document.index(end_marker)
    if end < start:
        raise GeneratedRegionError(f"{end_marker} appears before {start_marker}")

    return f"{document[:start]}\n{body}\n{document[end:]}"


def read_text(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text(path: Path, content: str) -> None:
    """Write file with parent directory creation."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(content)


def read_lesson_title(artifact: Path) -> str:
    """Return the <title> text of a lesson page, or an empty string."""
    soup = BeautifulSoup(artifact.read_text(encoding="utf-8", errors="replace"), "html.parser")
    if soup.title is None:
        return ""
    return normalize_text(soup.title.get_text(" ", strip=True))


def relative_href(index_dir: Path, target: Path) -> str:
    return Path(os.path.relpath(target, start=index_dir)).as_posix()


def generate_day_listing(days: list[DayFolder], index_dir: Path, titles: dict[DayKey, str]) -> str:
    """List items for a month index: one link per day, to its lesson."""
    if not days:
        return '<li class="empty-state">No lessons yet</li>'

    items = []
    for day in days:
        href = html.escape(relative_href(index_dir, day.artifact))
        title = titles.get(day.key)
        title_html = f' <span class="lesson-title">{html.escape(title)}</span>' if title else ""
        items.append(f'<li><a href="{href}">{day.name}</a>{title_html}</li>')
    return "\n".join(items)


def generate_month_listing(
    months: list[MonthFolder],
    index_dir: Path,
    days_by_month: dict[MonthKey, list[DayFolder]],
) -> str:
    """List items for a year index: one link per month folder, to its index."""
    if not months:
        return '<li class="empty-state">No months yet</li>'

    items = []
    for month in months:
        href = html.escape(relative_href(index_dir, month.path / INDEX_NAME))
        count = len(days_by_month.get(month.key, []))
        items.append(
            f'<li><a href="{href}">{month.name}</a> '
            f'<span class="lesson-count">{count} lesson{"s" if count != 1 else ""}</span></li>'
        )
    return "\n".join(items)


def generate_sidebar_nav(tree: ArchiveTree, index_dir: Path, titles: dict[DayKey, str]) -> str:
    """Root navigation: years newest first, months newest first, days in calendar order."""
    grouped = tree.days_by_year_and_month()
    lines = []

    for year_key in sorted(grouped, reverse=True):
        months = grouped[year_key]
        lines.append(f'<div class="nav-section" data-year="{year_key.name}">')
        lines.append(f'  <div class="nav-section-title">{year_key.name}</div>')
        lines.append('  <div class="nav-items">')

        for month_key in sorted(months, reverse=True):
            lines.append(f'    <div class="nav-section" data-month="{month_key.name}">')
            lines.append(f'      <div class="nav-section-title">{calendar.month_name[month_key.month]}</div>')
            lines.append('      <div class="nav-items">')
            for day in months[month_key]:
                href = html.escape(relative_href(index_dir, day.artifact))
                title = titles.get(day.key)
                title_attr = f' title="{html.escape(title)}"' if title else ""
                lines.append(
                    f'        <a class="nav-item" href="{href}" data-date="{day.name}"{title_attr}>'
                    f"{day.key.month}/{day.key.day}</a>"
                )
            lines.append("      </div>")
            lines.append("    </div>")

        lines.append("  </div>")
        lines.append("</div>")

    return "\n".join(lines)


def generate_simple_nav(tree: ArchiveTree, index_dir: Path) -> str:
    """Flat sidebar for month and year pages, grouped by month newest first."""
    grouped = tree.days_by_month()
    lines = []

    for month_key in sorted(grouped, reverse=True):
        month_name = calendar.month_name[month_key.month]
        lines.append(f'<h4 class="nav-month">{month_name} {month_key.year}</h4>')
        for day in grouped[month_key]:
            href = html.escape(relative_href(index_dir, day.artifact))
            lines.append(f'<a href="{href}">{month_name} {day.key.day}</a>')

    return "\n".join(lines)


def generate_recent_lessons(
    tree: ArchiveTree,
    index_dir: Path,
    reference_day: DayKey,
    titles: dict[DayKey, str],
) -> str:
    """Most recent lessons across the tree, newest first, with today's marked."""
    recent = sorted(tree.days, key=lambda day: day.key, reverse=True)[:RECENT_LESSONS_LIMIT]
    links = []

    for day in recent:
        css_class = "lesson-link today" if day.key == reference_day else "lesson-link"
        href = html.escape(relative_href(index_dir, day.artifact))
        title = titles.get(day.key)
        title_attr = f' title="{html.escape(title)}"' if title else ""
        display = f"{calendar.month_abbr[day.key.month]} {day.key.day}"
        links.append(f'<a class="{css_class}" href="{href}" data-date="{day.name}"{title_attr}>{display}</a>')

    return "\n".join(links)


def generate_index_page(title: str, listing_region: str, home_href: str) -> str:
    """Minimal month or year index page carrying the generated-region markers."""
    listing_start, listing_end = region_markers(listing_region)
    nav_start, nav_end = region_markers("nav")

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)} Lessons</title>
</head>
<body>
    <header>
        <h1>{html.escape(title)}</h1>
        <nav>
            <a href="{html.escape(home_href)}">&larr; Home</a>
        </nav>
    </header>
    <main>
        <ul>
{listing_start}
{listing_end}
        </ul>
    </main>
    <aside>
{nav_start}
{nav_end}
    </aside>
</body>
</html>
"""


@dataclass
class RebuildSummary:
    updated: int = 0
    unchanged: int = 0
    created: int = 0
    missing: int = 0


def create_missing_indexes(tree: ArchiveTree) -> int:
    """Write a starter index page into every month and year folder that has none."""
    created = 0
    root_index = tree.root / INDEX_NAME
    folders = [(month.path, month.name, "days") for month in tree.months]
    folders += [(year.path, year.name, "months") for year in tree.years]

    for folder, title, listing_region in folders:
        index_file = folder / INDEX_NAME
        if index_file.exists():
            continue
        write_text(index_file, generate_index_page(title, listing_region, relative_href(folder, root_index)))
        logging.info("Created %s", index_file.relative_to(tree.root).as_posix())
        created += 1

    return created


def _render_document(path: Path, required: dict[str, str], optional: dict[str, str]) -> tuple[str, str]:
    original = read_text(path)
    rendered = original
    try:
        for name, body in required.items():
            rendered = replace_region(rendered, name, body)
        for name, body in optional.items():
            rendered = replace_region(rendered, name, body, required=False)
    except GeneratedRegionError as exc:
        raise GeneratedRegionError(f"{path}: {exc}") from exc
    return original, rendered


def rebuild_indexes(root: Path, reference_date: date, create_missing: bool = False) -> RebuildSummary:
    """Rewrite the generated regions of the root, month and year index documents.

    Every document is rendered before any is written, so a marker error leaves
    all of them untouched. Folders without an index document are skipped unless
    create_missing is set.
    """
    summary = RebuildSummary()
    tree = scan_tree(root)
    if create_missing:
        summary.created = create_missing_indexes(tree)

    titles = {day.key: read_lesson_title(day.artifact) for day in tree.days}
    days_by_month = tree.days_by_month()
    months_by_year = tree.months_by_year()
    pending: list[tuple[Path, str, str]] = []

    root_index = root / INDEX_NAME
    if root_index.is_file():
        regions = {
            "nav": generate_sidebar_nav(tree, root, titles),
            "recent": generate_recent_lessons(tree, root, DayKey.from_date(reference_date), titles),
        }
        pending.append((root_index, *_render_document(root_index, regions, {})))
    else:
        logging.info("No %s found in %s; skipping root navigation", INDEX_NAME, root)

    for month in tree.months:
        index_file = month.path / INDEX_NAME
        if not index_file.is_file():
            summary.missing += 1
            continue
        listing = generate_day_listing(days_by_month.get(month.key, []), month.path, titles)
        nav = generate_simple_nav(tree, month.path)
        pending.append((index_file, *_render_document(index_file, {"days": listing}, {"nav": nav})))

    for year in tree.years:
        index_file = year.path / INDEX_NAME
        if not index_file.is_file():
            summary.missing += 1
            continue
        listing = generate_month_listing(months_by_year.get(year.key, []), year.path, days_by_month)
        nav = generate_simple_nav(tree, year.path)
        pending.append((index_file, *_render_document(index_file, {"months": listing}, {"nav": nav})))

    for path, original, rendered in pending:
        if rendered == original:
            summary.unchanged += 1
            continue
        write_text(path, rendered)
        summary.updated += 1
        logging.info("Updated %s", path.relative_to(root).as_posix())

    logging.info(
        "Indexes rebuilt: days=%d months=%d years=%d updated=%d unchanged=%d",
        len(tree.days),
        len(days_by_month),
        len(tree.years),
        summary.updated,
        summary.unchanged,
    )
    return summary


# Command line


def report_summary(summary: ArchiveSummary, dry_run: bool, dry_run_hint: str) -> None:
    logging.info("--- Summary ---")
    logging.info(
        "%s: %d, skipped: %d, missing: %d",
        "Would move" if dry_run else "Moved",
        summary.moved,
        summary.skipped,
        summary.missing,
    )

    months = summary.months
    if months:
        logging.info("Months archived: %d", len(months))
        for name, count in months.items():
            logging.info("  %s: %d lesson%s", name, count, "s" if count != 1 else "")

    years = summary.years
    if years:
        logging.info("Years archived: %d", len(years))
        for name, count in years.items():
            logging.info("  %s: %d month%s", name, count, "s" if count != 1 else "")

    if dry_run:
        logging.info("This was a dry run. %s", dry_run_hint)
    elif not summary.moved:
        logging.info("Nothing to archive")


def run_daily(root: Path, reference_date: date, dry_run: bool = False, rebuild: bool = False) -> ArchiveSummary:
    """Archive yesterday's lesson folder into its month folder."""
    target = previous_day(reference_date)
    logging.info("Archiving: %s", target.name)

    day_folders = list_day_folders(root)
    if not any(folder.key == target for folder in day_folders):
        logging.info("No lesson found for %s", target.name)

    plan = plan_resume(list_stranded_day_folders(root)) + plan_previous_day(day_folders, reference_date)
    summary = execute(plan, dry_run=dry_run)
    report_summary(summary, dry_run, "Remove --dry-run to actually archive.")

    if rebuild and not dry_run:
        rebuild_indexes(root, reference_date)
    return summary


def run_monthly(root: Path, reference_date: date, dry_run: bool = False, rebuild: bool = False) -> ArchiveSummary:
    """Archive last month's folder into its year folder."""
    target = previous_month(reference_date)
    logging.info("Archiving: %s into %s/", target.name, target.year_key.name)

    month_folders = list_month_folders(root)
    if not any(folder.key == target for folder in month_folders):
        logging.info("No month folder found: %s", target.name)

    summary = execute(plan_previous_month(month_folders, reference_date), dry_run=dry_run)
    report_summary(summary, dry_run, "Remove --dry-run to actually archive.")

    if rebuild and not dry_run:
        rebuild_indexes(root, reference_date)
    return summary


def run_archive(root: Path, reference_date: date, dry_run: bool = True, rebuild: bool = False) -> ArchiveSummary:
    """Roll every past day into its month and every past-year month into its year."""
    folders = list_day_folders(root)
    logging.info("Found %d lesson folders", len(folders))
    if folders:
        logging.info("Current folders: %s", ", ".join(folder.name for folder in folders))

    plan = build_archive_plan(root, reference_date)
    logging.info("%sPlanned %d moves", "[DRY RUN] " if dry_run else "", len(plan))

    summary = execute(plan, dry_run=dry_run)
    report_summary(summary, dry_run, "Use --execute to actually move folders.")

    if rebuild and not dry_run:
        rebuild_indexes(root, reference_date)
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Archive daily lesson folders and rebuild index pages.")
    parser.add_argument(
        "--root",
        default=DEFAULT_ROOT,
        help="Site root holding the date folders (default: $LESSON_ARCHIVE_ROOT or current directory).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    date_help = "Reference date YYYY-MM-DD used instead of today."
    rebuild_help = "Rebuild index documents after a live run."

    daily = subparsers.add_parser("daily", help="Archive yesterday's lesson into its month folder.")
    daily.add_argument("--date", help=date_help)
    daily.add_argument("--dry-run", action="store_true", help="Plan and print only.")
    daily.add_argument("--rebuild-indexes", action="store_true", help=rebuild_help)

    monthly = subparsers.add_parser("monthly", help="Archive last month's folder into its year folder.")
    monthly.add_argument("--date", help=date_help)
    monthly.add_argument("--dry-run", action="store_true", help="Plan and print only.")
    monthly.add_argument("--rebuild-indexes", action="store_true", help=rebuild_help)

    archive = subparsers.add_parser("archive", help="Roll up every past day and past-year month.")
    archive.add_argument("--date", help=date_help)
    archive.add_argument("--dry-run", action="store_true", help="Preview changes.")
    archive.add_argument("--execute", action="store_true", help="Actually move folders.")
    archive.add_argument("--rebuild-indexes", action="store_true", help=rebuild_help)

    indexes = subparsers.add_parser("indexes", help="Rebuild generated regions of index documents.")
    indexes.add_argument("--date", help="Reference date YYYY-MM-DD marking today's lesson.")
    indexes.add_argument(
        "--create-missing",
        action="store_true",
        help="Write a starter index.html into month and year folders that have none.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    root = Path(args.root)

    if args.command == "archive" and not (args.dry_run or args.execute):
        logging.error("Usage:")
        logging.error("  lesson-archive archive --dry-run   # Preview changes")
        logging.error("  lesson-archive archive --execute   # Actually archive")
        return 1

    try:
        reference_date = parse_reference_date(args.date) if args.date else date.today()
    except ValueError as exc:
        logging.error("FAILED: %s", exc)
        return 1

    try:
        if args.command == "daily":
            run_daily(root, reference_date, dry_run=args.dry_run, rebuild=args.rebuild_indexes)
        elif args.command == "monthly":
            run_monthly(root, reference_date, dry_run=args.dry_run, rebuild=args.rebuild_indexes)
        elif args.command == "archive":
            run_archive(root, reference_date, dry_run=args.dry_run, rebuild=args.rebuild_indexes)
        else:
            rebuild_indexes(root, reference_date, create_missing=args.create_missing)
    except GeneratedRegionError as exc:
        logging.error("FAILED: %s", exc)
        return 1
    except OSError as exc:
        logging.exception("FAILED: archive run aborted: %s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
