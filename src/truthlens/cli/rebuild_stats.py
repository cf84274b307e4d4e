from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import click
from sqlalchemy import select
from sqlalchemy.orm import Session

from truthlens.db.daily_stats import lock_statement, logged_event_queries, replace_statements, rows_to_events
from truthlens.db.session import SyncSessionLocal, sync_engine
from truthlens.models.db import Base, DailyArticleStat
from truthlens.services.averages import DailyTotals, LoggedEvent, replay_events


@dataclass(frozen=True)
class StatDrift:
    article_id: int
    day: date
    stored: tuple[int, int, int, int] | None
    rebuilt: tuple[int, int, int, int]


def _counters(row: DailyArticleStat | DailyTotals) -> tuple[int, int, int, int]:
    return (row.views, row.shares, row.bounces, row.average_time_on_page)


def lock_daily_stats(session: Session) -> None:
    lock = lock_statement(session.get_bind().dialect.name)
    if lock is not None:
        session.execute(lock)


def collect_rebuilt_totals(
    session: Session,
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list[DailyTotals]:
    events: list[LoggedEvent] = []
    for kind, query in logged_event_queries(article_id, since, until):
        events.extend(rows_to_events(kind, session.execute(query).all()))

    totals = replay_events(events)
    return [totals[key] for key in sorted(totals)]


def find_drift(
    session: Session,
    totals: list[DailyTotals],
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list[StatDrift]:
    stmt = select(DailyArticleStat)
    if article_id is not None:
        stmt = stmt.where(DailyArticleStat.article_id == article_id)
    if since is not None:
        stmt = stmt.where(DailyArticleStat.date >= since)
    if until is not None:
        stmt = stmt.where(DailyArticleStat.date <= until)

    stored = {(row.article_id, row.date): _counters(row) for row in session.execute(stmt).scalars().all()}

    drift: list[StatDrift] = []
    for total in totals:
        key = (total.article_id, total.day)
        rebuilt = _counters(total)
        current = stored.pop(key, None)
        if current != rebuilt:
            drift.append(StatDrift(article_id=total.article_id, day=total.day, stored=current, rebuilt=rebuilt))

    # aggregate rows with no events left in the log
    for (stale_article, stale_day), current in sorted(stored.items()):
        drift.append(StatDrift(article_id=stale_article, day=stale_day, stored=current, rebuilt=(0, 0, 0, 0)))
    return drift


def apply_rebuild(
    session: Session,
    totals: list[DailyTotals],
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> int:
    """Replace the rows in scope; the caller owns the transaction."""
    for statement in replace_statements(totals, article_id, since, until):
        session.execute(statement)
    return len(totals)


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


@click.command()
@click.option("--article-id", type=int, default=None, help="Only rebuild this article. Default: all articles.")
@click.option("--since", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="First UTC day to rebuild.")
@click.option("--until", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Last UTC day to rebuild.")
@click.option(
    "--apply",
    "apply_changes",
    is_flag=True,
    help="Write rebuilt rows. Default mode is dry-run. Reads and writes run in one transaction; "
    "on PostgreSQL live stat updates wait on a table lock until it commits.",
)
@click.option("--sample-size", default=10, show_default=True, help="How many differing rows to print as examples.")
def main(
    article_id: int | None,
    since: datetime | None,
    until: datetime | None,
    apply_changes: bool,
    sample_size: int,
) -> None:
    """Rebuild daily article stats by replaying the engagement log."""
    Base.metadata.create_all(sync_engine)

    since_day, until_day = _as_date(since), _as_date(until)
    if since_day and until_day and since_day > until_day:
        raise click.BadParameter("--since must not be after --until")

    written = None
    with SyncSessionLocal() as session, session.begin():
        if apply_changes:
            lock_daily_stats(session)
        totals = collect_rebuilt_totals(session, article_id, since_day, until_day)
        drift = find_drift(session, totals, article_id, since_day, until_day)
        click.echo(f"Replayed log into {len(totals)} daily row(s); {len(drift)} differ from stored stats.")

        if drift:
            click.echo("Sample differences (views, shares, bounces, avg_time_on_page):")
            for item in drift[:sample_size]:
                click.echo(f"  article={item.article_id} | {item.day.isoformat()} | {item.stored} -> {item.rebuilt}")

        if apply_changes and drift:
            written = apply_rebuild(session, totals, article_id, since_day, until_day)

    if not apply_changes:
        click.echo("Dry-run complete. Re-run with --apply to rewrite stats.")
    elif written is None:
        click.echo("Stats already match the log. No updates applied.")
    else:
        click.echo(f"Rewrote {written} daily row(s).")


if __name__ == "__main__":
    main()
