"""Console summaries of tracked entries."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .db import database_connection, fetch_entries_for_day
from .models import TimeEntry


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_daily_summary(self, day: datetime) -> None:
        with database_connection(self.db_path) as conn:
            entries = fetch_entries_for_day(conn, day)
        closed = [entry for entry in entries if not entry.is_open]
        if not entries:
            print("No time tracked on the selected day.")
            return

        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        print(f"Tracked time:   {format_duration(sum(e.duration or 0 for e in closed))}")
        print(f"Idle kept:      {format_duration(sum(e.kept_idle_seconds() for e in closed))}")
        print(f"Idle discarded: {format_duration(sum(e.discarded_seconds() for e in closed))}")
        open_entries = len(entries) - len(closed)
        if open_entries:
            print(f"Still running:  {open_entries} entr{'y' if open_entries == 1 else 'ies'}")
        print()

        totals = aggregate_by_task(closed)
        if totals:
            print("By project / task:")
            for (project, task), seconds in totals[:10]:
                print(f"  {project:<20} {task:<25} {format_duration(seconds)}")

        reasons = [
            interval.reason
            for entry in closed
            for interval in entry.idle_intervals
            if not interval.discarded and interval.reason
        ]
        if reasons:
            print()
            print("Kept idle reasons:")
            for reason in reasons:
                print(f"  - {reason}")


def aggregate_by_task(entries: Iterable[TimeEntry]) -> list[tuple[tuple[str, str], int]]:
    totals: defaultdict[tuple[str, str], int] = defaultdict(int)
    for entry in entries:
        totals[(entry.project_id, entry.task_id)] += entry.duration or 0
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
