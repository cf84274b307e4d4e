from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.api.deps import Principal, require_admin
from truthlens.config import settings
from truthlens.db.content import (
    create_article,
    create_reference,
    delete_article,
    delete_reference,
    get_article,
    get_article_by_slug,
    list_articles,
    list_references,
    update_article,
    update_reference,
)
from truthlens.db.session import get_async_session
from truthlens.models.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleListResponse,
    ArticleStatus,
    ArticleSummary,
    ArticleUpdate,
    MessageResponse,
    ReferenceIn,
    ReferenceOut,
    ReferenceUpdate,
)

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("", response_model=ArticleListResponse)
async def get_articles(
    topic_id: int | None = None,
    status: ArticleStatus | None = None,
    author_id: int | None = None,
    search: str | None = None,
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
):
    articles, total = await list_articles(
        session,
        topic_id=topic_id,
        status=status,
        author_id=author_id,
        search=search,
        limit=limit,
        offset=offset,
    )
    return ArticleListResponse(
        articles=[ArticleSummary.model_validate(a) for a in articles],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/slug/{slug}", response_model=ArticleDetail)
async def get_article_from_slug(slug: str, session: AsyncSession = Depends(get_async_session)):
    return ArticleDetail.model_validate(await get_article_by_slug(session, slug))


@router.get("/{article_id}", response_model=ArticleDetail)
async def get_single_article(article_id: int, session: AsyncSession = Depends(get_async_session)):
    return ArticleDetail.model_validate(await get_article(session, article_id))


@router.post("", response_model=ArticleDetail, status_code=201)
async def post_article(
    body: ArticleCreate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    article = await create_article(session, body, editor_id=principal.user_id)
    return ArticleDetail.model_validate(article)


@router.put("/{article_id}", response_model=ArticleDetail)
async def put_article(
    article_id: int,
    body: ArticleUpdate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    article = await update_article(session, article_id, body, editor_id=principal.user_id)
    return ArticleDetail.model_validate(article)


@router.delete("/{article_id}", response_model=MessageResponse)
async def remove_article(
    article_id: int,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    await delete_article(session, article_id)
    return MessageResponse(message="Article deleted successfully")


@router.get("/{article_id}/references", response_model=list[ReferenceOut])
async def get_references(article_id: int, session: AsyncSession = Depends(get_async_session)):
    references = await list_references(session, article_id)
    return [ReferenceOut.model_validate(r) for r in references]


@router.post("/{article_id}/references", response_model=ReferenceOut, status_code=201)
async def post_reference(
    article_id: int,
    body: ReferenceIn,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ReferenceOut.model_validate(await create_reference(session, article_id, body))


@router.put("/{article_id}/references/{reference_id}", response_model=ReferenceOut)
async def put_reference(
    article_id: int,
    reference_id: int,
    body: ReferenceUpdate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ReferenceOut.model_validate(await update_reference(session, article_id, reference_id, body))


@router.delete("/{article_id}/references/{reference_id}", response_model=MessageResponse)
async def remove_reference(
    article_id: int,
    reference_id: int,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    await delete_reference(session, article_id, reference_id)
    return MessageResponse(message="Reference deleted successfully")
