from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone


@dataclass
class DailyTotals:
    article_id: int
    day: date
    views: int = 0
    shares: int = 0
    bounces: int = 0
    timed_bounces: int = 0
    average_time_on_page: int = 0


@dataclass(frozen=True)
class LoggedEvent:
    kind: str  # "view" | "bounce" | "share"
    article_id: int
    occurred_at: datetime
    event_id: int
    time_on_page: int | None = None


def utc_day(value: datetime) -> date:
    """Calendar day of a timestamp in UTC; naive timestamps are already UTC."""
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def blend_average(old_average: int, old_count: int, sample: int) -> int:
    """Fold one sample into a running average rebuilt from its implied total.

    Rounds half up to the nearest integer using integer arithmetic only, so the
    same expression can be evaluated by the database inside an upsert.
    """
    total = old_average * old_count + sample
    count = old_count + 1
    return (2 * total + count) // (2 * count)


def apply_event(totals: DailyTotals, event: LoggedEvent) -> None:
    if event.kind == "view":
        totals.views += 1
    elif event.kind == "share":
        totals.shares += 1
    elif event.kind == "bounce":
        totals.bounces += 1
        if event.time_on_page is not None:
            totals.average_time_on_page = blend_average(
                totals.average_time_on_page, totals.timed_bounces, event.time_on_page
            )
            totals.timed_bounces += 1
    else:
        raise ValueError(f"Unsupported event kind: {event.kind}")


def replay_events(events: Iterable[LoggedEvent]) -> dict[tuple[int, date], DailyTotals]:
    """Rebuild per-(article, day) totals from the engagement log.

    Events are folded in timestamp order (ties by kind and id) so the rounded
    running average follows the order the live aggregate saw them.
    """
    ordered = sorted(events, key=lambda e: (e.occurred_at, e.kind, e.event_id))
    totals: dict[tuple[int, date], DailyTotals] = {}
    for event in ordered:
        key = (event.article_id, utc_day(event.occurred_at))
        if key not in totals:
            totals[key] = DailyTotals(article_id=key[0], day=key[1])
        apply_event(totals[key], event)
    return totals
