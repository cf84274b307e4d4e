"""Append-only article version history.

Version numbers per article form a strictly increasing sequence starting at
1. Allocation reads the current maximum and inserts ``max + 1`` inside a
savepoint; the ``(article_id, version_number)`` unique constraint turns a
lost race into an ``IntegrityError`` that is retried with a fresh read.
Callers that modify the article in the same transaction lock its row first,
which serializes editors of the same article on PostgreSQL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from truthlens.config import settings
from truthlens.errors import ConflictError, NotFoundError, is_unique_violation, translate_integrity_error
from truthlens.models.db import Article, ArticleVersion, utcnow

logger = logging.getLogger(__name__)

ARTICLE_NOT_FOUND = "Article not found"
VERSION_NOT_FOUND = "Version not found for this article"


@dataclass(slots=True)
class VersionSnapshot:
    title: str
    description: str | None
    content: str

    @classmethod
    def of(cls, article: Article | ArticleVersion) -> VersionSnapshot:
        return cls(title=article.title, description=article.description, content=article.content)


@dataclass(slots=True)
class RestoreResult:
    article: Article
    restored_from_version: int
    version: ArticleVersion


async def lock_article(session: AsyncSession, article_id: int, with_references: bool = False) -> Article:
    query = (
        select(Article)
        .where(Article.id == article_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if with_references:
        query = query.options(selectinload(Article.references))
    article = (await session.execute(query)).scalar_one_or_none()
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    return article


async def latest_version_number(session: AsyncSession, article_id: int) -> int:
    result = await session.execute(
        select(func.max(ArticleVersion.version_number)).where(ArticleVersion.article_id == article_id)
    )
    return result.scalar_one() or 0


async def allocate_version(
    session: AsyncSession,
    article_id: int,
    snapshot: VersionSnapshot,
    editor_id: int | None,
) -> ArticleVersion:
    """Insert the next version for ``article_id`` without committing."""
    attempts = settings.version_allocation_retries + 1
    for attempt in range(1, attempts + 1):
        version_number = await latest_version_number(session, article_id) + 1
        version = ArticleVersion(
            article_id=article_id,
            title=snapshot.title,
            description=snapshot.description,
            content=snapshot.content,
            version_number=version_number,
            created_by_id=editor_id,
            created_at=utcnow(),
        )
        try:
            async with session.begin_nested():
                session.add(version)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise translate_integrity_error(exc, missing_message=ARTICLE_NOT_FOUND) from exc
            logger.warning(
                "Version %d of article %d was taken concurrently (attempt %d/%d)",
                version_number,
                article_id,
                attempt,
                attempts,
            )
            continue
        return version

    raise ConflictError(f"Could not allocate a version number for article {article_id}")


async def create_initial_version(session: AsyncSession, article: Article, editor_id: int | None) -> ArticleVersion:
    """Version 1 of a freshly inserted article; the caller commits."""
    version = ArticleVersion(
        article_id=article.id,
        title=article.title,
        description=article.description,
        content=article.content,
        version_number=1,
        created_by_id=editor_id,
        created_at=utcnow(),
    )
    session.add(version)
    await session.flush()
    return version


async def create_version(
    session: AsyncSession,
    article_id: int,
    snapshot: VersionSnapshot,
    editor_id: int | None,
) -> ArticleVersion:
    try:
        await lock_article(session, article_id)
        version = await allocate_version(session, article_id, snapshot, editor_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return version


async def list_versions(session: AsyncSession, article_id: int) -> list[ArticleVersion]:
    if await session.get(Article, article_id) is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    result = await session.execute(
        select(ArticleVersion)
        .where(ArticleVersion.article_id == article_id)
        .order_by(ArticleVersion.version_number.desc())
    )
    return list(result.scalars().all())


async def get_version(session: AsyncSession, article_id: int, version_id: int) -> ArticleVersion:
    if await session.get(Article, article_id) is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    version = await session.get(ArticleVersion, version_id)
    # a version of another article gets the same answer as a missing one
    if version is None or version.article_id != article_id:
        raise NotFoundError(VERSION_NOT_FOUND)
    return version


async def restore_version(
    session: AsyncSession,
    article_id: int,
    version_id: int,
    editor_id: int | None,
) -> RestoreResult:
    """Copy a past version back onto the article and record it as a new version."""
    try:
        article = await lock_article(session, article_id, with_references=True)
        target = await session.get(ArticleVersion, version_id)
        if target is None or target.article_id != article_id:
            raise NotFoundError(VERSION_NOT_FOUND)

        article.title = target.title
        article.description = target.description
        article.content = target.content
        article.updated_at = utcnow()
        await session.flush()

        version = await allocate_version(session, article_id, VersionSnapshot.of(target), editor_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Restored article %d to version %d as version %d",
        article_id,
        target.version_number,
        version.version_number,
    )
    return RestoreResult(article=article, restored_from_version=target.version_number, version=version)
