from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.api.deps import Principal, require_admin
from truthlens.db.session import get_async_session
from truthlens.db.versions import VersionSnapshot, create_version, get_version, list_versions, restore_version
from truthlens.models.schemas import ArticleDetail, RestoredArticle, VersionCreate, VersionOut

router = APIRouter(prefix="/api/articles", tags=["versions"])


@router.get("/{article_id}/versions", response_model=list[VersionOut])
async def get_versions(article_id: int, session: AsyncSession = Depends(get_async_session)):
    versions = await list_versions(session, article_id)
    return [VersionOut.model_validate(v) for v in versions]


@router.post("/{article_id}/versions", response_model=VersionOut, status_code=201)
async def post_version(
    article_id: int,
    body: VersionCreate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    snapshot = VersionSnapshot(title=body.title, description=body.description, content=body.content)
    version = await create_version(session, article_id, snapshot, editor_id=principal.user_id)
    return VersionOut.model_validate(version)


@router.get("/{article_id}/versions/{version_id}", response_model=VersionOut)
async def get_single_version(
    article_id: int,
    version_id: int,
    session: AsyncSession = Depends(get_async_session),
):
    return VersionOut.model_validate(await get_version(session, article_id, version_id))


@router.post("/{article_id}/restore/{version_id}", response_model=RestoredArticle)
async def post_restore(
    article_id: int,
    version_id: int,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    result = await restore_version(session, article_id, version_id, editor_id=principal.user_id)
    article = ArticleDetail.model_validate(result.article)
    return RestoredArticle(
        **article.model_dump(),
        restored_from_version=result.restored_from_version,
        version=VersionOut.model_validate(result.version),
    )
