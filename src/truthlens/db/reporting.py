from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.config import settings
from truthlens.models.db import Article, ArticleView, DailyArticleStat, SocialShare


@dataclass
class TopArticleRow:
    id: int
    title: str
    views: int


@dataclass
class OverviewStatsResult:
    total_views: int
    total_shares: int
    total_articles: int
    top_articles: list[TopArticleRow]


def _bounded(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.where(column >= start)
    if end is not None:
        query = query.where(column <= end)
    return query


async def get_article_stats(
    session: AsyncSession,
    article_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[DailyArticleStat]:
    query = select(DailyArticleStat).where(DailyArticleStat.article_id == article_id)
    query = _bounded(query, DailyArticleStat.date, start_date, end_date)
    result = await session.execute(query.order_by(DailyArticleStat.date.asc()))
    return list(result.scalars().all())


async def get_top_articles(
    session: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[TopArticleRow]:
    """Articles ranked by raw view-log count in the range; order among exact ties is unspecified."""
    view_count = func.count(ArticleView.id).label("views")
    query = (
        select(Article.id, Article.title, view_count)
        .select_from(ArticleView)
        .join(Article, ArticleView.article_id == Article.id)
    )
    query = _bounded(query, ArticleView.viewed_at, start, end)
    query = query.group_by(Article.id, Article.title).order_by(view_count.desc()).limit(
        limit or settings.top_articles_limit
    )
    result = await session.execute(query)
    return [TopArticleRow(id=row[0], title=row[1], views=row[2]) for row in result.all()]


async def get_overview_stats(
    session: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> OverviewStatsResult:
    views_query = _bounded(select(func.count(ArticleView.id)), ArticleView.viewed_at, start, end)
    shares_query = _bounded(select(func.count(SocialShare.id)), SocialShare.shared_at, start, end)
    articles_query = select(func.count(Article.id)).where(Article.status == "published")

    total_views = (await session.execute(views_query)).scalar_one()
    total_shares = (await session.execute(shares_query)).scalar_one()
    total_articles = (await session.execute(articles_query)).scalar_one()
    top_articles = await get_top_articles(session, start, end)

    return OverviewStatsResult(
        total_views=int(total_views or 0),
        total_shares=int(total_shares or 0),
        total_articles=int(total_articles or 0),
        top_articles=top_articles,
    )
