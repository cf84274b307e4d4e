from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.api.deps import Principal, as_utc, get_client_info, get_principal, require_admin, require_user
from truthlens.config import settings
from truthlens.db.engagement import ClientInfo, record_bookmark, record_bounce, record_share, record_view
from truthlens.db.reporting import get_article_stats, get_overview_stats, get_top_articles
from truthlens.db.session import get_async_session
from truthlens.models.schemas import (
    ArticleBounceOut,
    ArticleViewOut,
    BookmarkEvent,
    BounceEvent,
    DailyStatOut,
    OverviewStats,
    ShareEvent,
    SocialShareOut,
    TopArticle,
    ViewEvent,
)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("/view", response_model=ArticleViewOut, status_code=201)
async def post_view(
    body: ViewEvent,
    principal: Principal = Depends(get_principal),
    client: ClientInfo = Depends(get_client_info),
    session: AsyncSession = Depends(get_async_session),
):
    view = await record_view(session, body.article_id, user_id=principal.user_id, client=client)
    return ArticleViewOut.model_validate(view)


@router.post("/bounce", response_model=ArticleBounceOut, status_code=201)
async def post_bounce(
    body: BounceEvent,
    principal: Principal = Depends(get_principal),
    client: ClientInfo = Depends(get_client_info),
    session: AsyncSession = Depends(get_async_session),
):
    bounce = await record_bounce(
        session,
        body.article_id,
        time_on_page=body.time_on_page,
        user_id=principal.user_id,
        client=client,
    )
    return ArticleBounceOut.model_validate(bounce)


@router.post("/share", response_model=SocialShareOut, status_code=201)
async def post_share(
    body: ShareEvent,
    principal: Principal = Depends(get_principal),
    client: ClientInfo = Depends(get_client_info),
    session: AsyncSession = Depends(get_async_session),
):
    share = await record_share(
        session, body.article_id, body.platform, user_id=principal.user_id, client=client
    )
    return SocialShareOut.model_validate(share)


@router.post("/bookmark", response_model=SocialShareOut, status_code=201)
async def post_bookmark(
    body: BookmarkEvent,
    principal: Principal = Depends(require_user),
    client: ClientInfo = Depends(get_client_info),
    session: AsyncSession = Depends(get_async_session),
):
    share = await record_bookmark(session, body.article_id, user_id=principal.user_id, client=client)
    return SocialShareOut.model_validate(share)


@router.get("/overview", response_model=OverviewStats)
async def get_overview(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    stats = await get_overview_stats(session, as_utc(start_date), as_utc(end_date))
    return OverviewStats(
        total_views=stats.total_views,
        total_shares=stats.total_shares,
        total_articles=stats.total_articles,
        top_articles=[TopArticle.model_validate(row) for row in stats.top_articles],
    )


@router.get("/articles", response_model=list[TopArticle])
async def get_popular_articles(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = Query(settings.top_articles_limit, ge=1, le=settings.max_page_size),
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    rows = await get_top_articles(session, as_utc(start_date), as_utc(end_date), limit=limit)
    return [TopArticle.model_validate(row) for row in rows]


@router.get("/article/{article_id}", response_model=list[DailyStatOut])
async def get_article_daily_stats(
    article_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    stats = await get_article_stats(session, article_id, start_date, end_date)
    return [DailyStatOut.model_validate(s) for s in stats]
