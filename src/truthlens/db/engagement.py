"""Append-only engagement log (views, bounces, shares).

Each recording commits its log row first and then folds the event into the
day's aggregate. The two writes are separate: if the aggregate update keeps
failing the event stays logged and the aggregate can be rebuilt from the log.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.config import settings
from truthlens.db import daily_stats
from truthlens.db.versions import ARTICLE_NOT_FOUND
from truthlens.errors import translate_integrity_error
from truthlens.models.db import ArticleBounce, ArticleView, SocialShare, utcnow
from truthlens.services.averages import utc_day

logger = logging.getLogger(__name__)

BOOKMARK_PLATFORM = "bookmark"


@dataclass(slots=True)
class ClientInfo:
    ip: str | None = None
    user_agent: str | None = None
    referrer: str | None = None


async def _append(session: AsyncSession, row) -> None:
    session.add(row)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(exc, missing_message=ARTICLE_NOT_FOUND) from exc
    # keep the logged row loaded if the aggregate step has to roll back
    session.expunge(row)


async def _aggregate(
    session: AsyncSession,
    apply: Callable[..., Awaitable[None]],
    article_id: int,
    day: date,
    *args,
) -> bool:
    attempts = settings.aggregate_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            await apply(session, article_id, day, *args)
            return True
        except DBAPIError:
            await session.rollback()
            if attempt < attempts:
                logger.warning("Retrying daily stats update for article %d on %s", article_id, day)
                continue
            logger.exception(
                "Daily stats for article %d on %s lag the engagement log; rebuild them from the log",
                article_id,
                day,
            )
    return False


async def record_view(
    session: AsyncSession,
    article_id: int,
    user_id: int | None = None,
    client: ClientInfo | None = None,
) -> ArticleView:
    client = client or ClientInfo()
    view = ArticleView(
        article_id=article_id,
        user_id=user_id,
        ip=client.ip,
        user_agent=client.user_agent,
        referrer=client.referrer,
        viewed_at=utcnow(),
    )
    await _append(session, view)
    logger.debug("Recorded view %d of article %d", view.id, article_id)
    await _aggregate(session, daily_stats.apply_view, article_id, utc_day(view.viewed_at))
    return view


async def record_bounce(
    session: AsyncSession,
    article_id: int,
    time_on_page: int | None = None,
    user_id: int | None = None,
    client: ClientInfo | None = None,
) -> ArticleBounce:
    client = client or ClientInfo()
    bounce = ArticleBounce(
        article_id=article_id,
        user_id=user_id,
        ip=client.ip,
        user_agent=client.user_agent,
        referrer=client.referrer,
        time_on_page=time_on_page,
        bounced_at=utcnow(),
    )
    await _append(session, bounce)
    logger.debug("Recorded bounce %d of article %d (time_on_page=%s)", bounce.id, article_id, time_on_page)
    await _aggregate(session, daily_stats.apply_bounce, article_id, utc_day(bounce.bounced_at), time_on_page)
    return bounce


async def record_share(
    session: AsyncSession,
    article_id: int,
    platform: str,
    user_id: int | None = None,
    client: ClientInfo | None = None,
) -> SocialShare:
    client = client or ClientInfo()
    share = SocialShare(
        article_id=article_id,
        user_id=user_id,
        ip=client.ip,
        user_agent=client.user_agent,
        referrer=client.referrer,
        platform=platform,
        shared_at=utcnow(),
    )
    await _append(session, share)
    logger.debug("Recorded %s share %d of article %d", platform, share.id, article_id)
    await _aggregate(session, daily_stats.apply_share, article_id, utc_day(share.shared_at))
    return share


async def record_bookmark(
    session: AsyncSession,
    article_id: int,
    user_id: int | None = None,
    client: ClientInfo | None = None,
) -> SocialShare:
    return await record_share(session, article_id, BOOKMARK_PLATFORM, user_id=user_id, client=client)
