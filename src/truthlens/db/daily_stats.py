"""Per-(article, day) engagement aggregates.

Every counter change is a single ``INSERT ... ON CONFLICT DO UPDATE`` whose
arithmetic runs in the database against the row's current values, so
concurrent recorders never read-modify-write the same row from Python.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import Select, delete, insert, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.models.db import ArticleBounce, ArticleView, DailyArticleStat, SocialShare, utcnow
from truthlens.services.averages import DailyTotals, LoggedEvent, replay_events

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# blocks live upserts (ROW EXCLUSIVE) until a rebuild commits, readers still pass
LOCK_DAILY_STATS = text("LOCK TABLE daily_article_stats IN SHARE ROW EXCLUSIVE MODE")


def lock_statement(dialect_name: str):
    """Table lock taken before a rebuild reads the log, or None where writers already serialize."""
    return LOCK_DAILY_STATS if dialect_name == "postgresql" else None


def build_upsert(dialect_name: str, article_id: int, day: date, kind: str, time_on_page: int | None = None):
    try:
        insert_for_dialect = _UPSERT_BUILDERS[dialect_name]
    except KeyError:
        raise ValueError(f"Atomic upsert is not supported for dialect: {dialect_name}") from None

    now = utcnow()
    values = {
        "article_id": article_id,
        "date": day,
        "views": 0,
        "shares": 0,
        "bounces": 0,
        "timed_bounces": 0,
        "average_time_on_page": 0,
        "updated_at": now,
    }
    set_: dict = {"updated_at": now}

    if kind == "view":
        values["views"] = 1
        set_["views"] = DailyArticleStat.views + 1
    elif kind == "share":
        values["shares"] = 1
        set_["shares"] = DailyArticleStat.shares + 1
    elif kind == "bounce":
        values["bounces"] = 1
        set_["bounces"] = DailyArticleStat.bounces + 1
        if time_on_page is not None:
            values["timed_bounces"] = 1
            values["average_time_on_page"] = time_on_page
            old_avg = DailyArticleStat.average_time_on_page
            old_count = DailyArticleStat.timed_bounces
            # round-half-up of (old_avg * old_count + sample) / (old_count + 1), see blend_average
            set_["timed_bounces"] = old_count + 1
            set_["average_time_on_page"] = (2 * (old_avg * old_count + time_on_page) + (old_count + 1)) // (
                2 * (old_count + 1)
            )
    else:
        raise ValueError(f"Unsupported event kind: {kind}")

    stmt = insert_for_dialect(DailyArticleStat).values(**values)
    return stmt.on_conflict_do_update(index_elements=["article_id", "date"], set_=set_)


async def _apply(session: AsyncSession, article_id: int, day: date, kind: str, time_on_page: int | None = None) -> None:
    dialect_name = session.get_bind().dialect.name
    await session.execute(build_upsert(dialect_name, article_id, day, kind, time_on_page))
    await session.commit()


async def apply_view(session: AsyncSession, article_id: int, day: date) -> None:
    await _apply(session, article_id, day, "view")


async def apply_bounce(session: AsyncSession, article_id: int, day: date, time_on_page: int | None = None) -> None:
    await _apply(session, article_id, day, "bounce", time_on_page)


async def apply_share(session: AsyncSession, article_id: int, day: date) -> None:
    await _apply(session, article_id, day, "share")


async def get_daily_stat(session: AsyncSession, article_id: int, day: date) -> DailyArticleStat | None:
    result = await session.execute(
        select(DailyArticleStat).where(DailyArticleStat.article_id == article_id, DailyArticleStat.date == day)
    )
    return result.scalar_one_or_none()


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def logged_event_queries(
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list[tuple[str, Select]]:
    """Select statements over the three engagement logs, bounded to whole UTC days."""
    sources = [
        ("view", ArticleView, ArticleView.viewed_at, None),
        ("bounce", ArticleBounce, ArticleBounce.bounced_at, ArticleBounce.time_on_page),
        ("share", SocialShare, SocialShare.shared_at, None),
    ]
    queries: list[tuple[str, Select]] = []
    for kind, model, timestamp_col, sample_col in sources:
        columns = [model.id, model.article_id, timestamp_col]
        if sample_col is not None:
            columns.append(sample_col)
        query = select(*columns)
        if article_id is not None:
            query = query.where(model.article_id == article_id)
        if since is not None:
            query = query.where(timestamp_col >= _day_start(since))
        if until is not None:
            query = query.where(timestamp_col < _day_start(until + timedelta(days=1)))
        queries.append((kind, query))
    return queries


def rows_to_events(kind: str, rows) -> list[LoggedEvent]:
    events = []
    for row in rows:
        events.append(
            LoggedEvent(
                kind=kind,
                event_id=row[0],
                article_id=row[1],
                occurred_at=row[2],
                time_on_page=row[3] if kind == "bounce" else None,
            )
        )
    return events


def replace_statements(
    totals: list[DailyTotals],
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list:
    """Delete the aggregate rows in scope and insert the rebuilt ones."""
    clear = delete(DailyArticleStat)
    if article_id is not None:
        clear = clear.where(DailyArticleStat.article_id == article_id)
    if since is not None:
        clear = clear.where(DailyArticleStat.date >= since)
    if until is not None:
        clear = clear.where(DailyArticleStat.date <= until)

    statements = [clear]
    if totals:
        now = utcnow()
        statements.append(
            insert(DailyArticleStat).values(
                [
                    {
                        "article_id": t.article_id,
                        "date": t.day,
                        "views": t.views,
                        "shares": t.shares,
                        "bounces": t.bounces,
                        "timed_bounces": t.timed_bounces,
                        "average_time_on_page": t.average_time_on_page,
                        "updated_at": now,
                    }
                    for t in totals
                ]
            )
        )
    return statements


async def replay_daily_stats(
    session: AsyncSession,
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list[DailyTotals]:
    """Recompute aggregates from the log without writing them."""
    events: list[LoggedEvent] = []
    for kind, query in logged_event_queries(article_id, since, until):
        result = await session.execute(query)
        events.extend(rows_to_events(kind, result.all()))
    totals = replay_events(events)
    return [totals[key] for key in sorted(totals)]


async def rebuild_daily_stats(
    session: AsyncSession,
    article_id: int | None = None,
    since: date | None = None,
    until: date | None = None,
) -> list[DailyTotals]:
    """Replace the aggregates in scope with a replay of the log, in one transaction."""
    lock = lock_statement(session.get_bind().dialect.name)
    try:
        if lock is not None:
            await session.execute(lock)
        totals = await replay_daily_stats(session, article_id, since, until)
        for statement in replace_statements(totals, article_id, since, until):
            await session.execute(statement)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return totals
