from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from truthlens.db.versions import (
    ARTICLE_NOT_FOUND,
    VersionSnapshot,
    allocate_version,
    create_initial_version,
    lock_article,
)
from truthlens.errors import InvalidDataError, NotFoundError, translate_integrity_error
from truthlens.models.db import Article, Reference, Topic, User, utcnow
from truthlens.models.schemas import (
    ArticleCreate,
    ArticleUpdate,
    ReferenceIn,
    ReferenceUpdate,
    TopicCreate,
    TopicUpdate,
)
from truthlens.services.slugs import slugify

logger = logging.getLogger(__name__)

TOPIC_NOT_FOUND = "Topic not found"
TOPIC_CONFLICT = "Topic with this name or slug already exists"
ARTICLE_CONFLICT = "Article with this slug already exists"
REFERENCE_NOT_FOUND = "Reference not found"

# columns that may be omitted from an update but never cleared by it
_REQUIRED_ARTICLE_FIELDS = ("title", "slug", "content", "status")


def _require_slug(slug: str) -> str:
    if not slug:
        raise InvalidDataError("Invalid data", errors=[{"loc": ["slug"], "msg": "Slug must not be empty"}])
    return slug


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# Users


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def ensure_admin_user(
    session: AsyncSession,
    username: str,
    email: str | None = None,
    full_name: str | None = None,
) -> tuple[User, bool]:
    """Create the admin account if missing, or promote an existing one. Returns (user, created)."""
    user = await get_user_by_username(session, username)
    if user is not None:
        if user.role != "admin":
            user.role = "admin"
            user.updated_at = utcnow()
            await session.commit()
        return user, False

    user = User(username=username, email=email, full_name=full_name, role="admin")
    session.add(user)
    await session.commit()
    return user, True


# Topics


async def list_topics(session: AsyncSession) -> list[Topic]:
    result = await session.execute(select(Topic).order_by(Topic.name))
    return list(result.scalars().all())


async def get_topic(session: AsyncSession, topic_id: int) -> Topic:
    topic = await session.get(Topic, topic_id)
    if topic is None:
        raise NotFoundError(TOPIC_NOT_FOUND)
    return topic


async def get_topic_by_slug(session: AsyncSession, slug: str) -> Topic:
    topic = (await session.execute(select(Topic).where(Topic.slug == slug))).scalar_one_or_none()
    if topic is None:
        raise NotFoundError(TOPIC_NOT_FOUND)
    return topic


async def create_topic(session: AsyncSession, data: TopicCreate) -> Topic:
    topic = Topic(
        name=data.name,
        slug=_require_slug(data.slug or slugify(data.name)),
        description=data.description,
    )
    session.add(topic)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(exc, conflict_message=TOPIC_CONFLICT) from exc
    return topic


async def update_topic(session: AsyncSession, topic_id: int, data: TopicUpdate) -> Topic:
    topic = await get_topic(session, topic_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    if "name" in changes and not changes.get("slug"):
        changes["slug"] = slugify(changes["name"])
    if "slug" in changes:
        if changes["slug"] is None:
            changes.pop("slug")
        else:
            _require_slug(changes["slug"])

    for key, value in changes.items():
        setattr(topic, key, value)
    topic.updated_at = utcnow()
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(exc, conflict_message=TOPIC_CONFLICT) from exc
    return topic


async def delete_topic(session: AsyncSession, topic_id: int) -> None:
    """Delete a topic; its articles stay, with ``topic_id`` cleared by the foreign key."""
    await get_topic(session, topic_id)
    await session.execute(delete(Topic).where(Topic.id == topic_id))
    await session.commit()
    logger.info("Deleted topic %d", topic_id)


# Articles


async def get_article_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Article.id)))
    return result.scalar_one()


async def get_published_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Article.id)).where(Article.status == "published"))
    return result.scalar_one()


async def get_article(session: AsyncSession, article_id: int) -> Article:
    result = await session.execute(
        select(Article).options(selectinload(Article.references)).where(Article.id == article_id)
    )
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    return article


async def get_article_by_slug(session: AsyncSession, slug: str) -> Article:
    result = await session.execute(
        select(Article).options(selectinload(Article.references)).where(Article.slug == slug)
    )
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    return article


async def list_articles(
    session: AsyncSession,
    topic_id: int | None = None,
    status: str | None = None,
    author_id: int | None = None,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Article], int]:
    conditions = []
    if topic_id is not None:
        conditions.append(Article.topic_id == topic_id)
    if status:
        conditions.append(Article.status == status)
    if author_id is not None:
        conditions.append(Article.author_id == author_id)
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(
            or_(
                Article.title.ilike(pattern, escape="\\"),
                Article.description.ilike(pattern, escape="\\"),
                Article.content.ilike(pattern, escape="\\"),
            )
        )

    count_query = select(func.count(Article.id)).where(*conditions)
    total = (await session.execute(count_query)).scalar_one()

    query = (
        select(Article)
        .where(*conditions)
        .order_by(Article.updated_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(query)
    return list(result.scalars().all()), total


async def create_article(session: AsyncSession, data: ArticleCreate, editor_id: int | None) -> Article:
    """Insert an article with its references and version 1 in one transaction."""
    now = utcnow()
    published_at = data.published_at
    if data.status == "published" and published_at is None:
        published_at = now

    article = Article(
        title=data.title,
        slug=_require_slug(data.slug or slugify(data.title)),
        description=data.description,
        content=data.content,
        topic_id=data.topic_id,
        author_id=data.author_id if data.author_id is not None else editor_id,
        status=data.status,
        published_at=published_at,
        created_at=now,
        updated_at=now,
    )
    article.references = [
        Reference(title=ref.title, url=ref.url, description=ref.description, created_at=now, updated_at=now)
        for ref in data.references
    ]
    session.add(article)
    try:
        await session.flush()
        await create_initial_version(session, article, editor_id)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(
            exc, conflict_message=ARTICLE_CONFLICT, missing_message="Topic or author not found"
        ) from exc
    return article


def _content_changed(article: Article, changes: dict) -> bool:
    return ("title" in changes and changes["title"] != article.title) or (
        "content" in changes and changes["content"] != article.content
    )


async def update_article(
    session: AsyncSession,
    article_id: int,
    data: ArticleUpdate,
    editor_id: int | None,
) -> Article:
    """Apply an editor's update; a title or content change appends a version in the same transaction."""
    changes = data.model_dump(exclude_unset=True, exclude={"references"})
    for key in _REQUIRED_ARTICLE_FIELDS:
        if key in changes and changes[key] is None:
            changes.pop(key)

    try:
        article = await lock_article(session, article_id, with_references=True)

        if "title" in changes and changes["title"] != article.title and not changes.get("slug"):
            changes["slug"] = slugify(changes["title"])
        if "slug" in changes:
            _require_slug(changes["slug"])
        if changes.get("status") == "published" and article.status != "published":
            changes.setdefault("published_at", utcnow())

        versioned = _content_changed(article, changes)
        now = utcnow()
        for key, value in changes.items():
            setattr(article, key, value)
        article.updated_at = now

        if data.references is not None:
            article.references = [
                Reference(title=ref.title, url=ref.url, description=ref.description, created_at=now, updated_at=now)
                for ref in data.references
            ]

        await session.flush()
        if versioned:
            await allocate_version(session, article_id, VersionSnapshot.of(article), editor_id)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(
            exc, conflict_message=ARTICLE_CONFLICT, missing_message="Topic or author not found"
        ) from exc
    except Exception:
        await session.rollback()
        raise
    return article


async def delete_article(session: AsyncSession, article_id: int) -> None:
    """Delete an article; references, versions and engagement rows go with it."""
    if await session.get(Article, article_id) is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    await session.execute(delete(Article).where(Article.id == article_id))
    await session.commit()
    logger.info("Deleted article %d", article_id)


# References


async def list_references(session: AsyncSession, article_id: int) -> list[Reference]:
    if await session.get(Article, article_id) is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    result = await session.execute(
        select(Reference).where(Reference.article_id == article_id).order_by(Reference.created_at, Reference.id)
    )
    return list(result.scalars().all())


async def _get_reference(session: AsyncSession, article_id: int, reference_id: int) -> Reference:
    reference = await session.get(Reference, reference_id)
    if reference is None or reference.article_id != article_id:
        raise NotFoundError(REFERENCE_NOT_FOUND)
    return reference


async def create_reference(session: AsyncSession, article_id: int, data: ReferenceIn) -> Reference:
    now = utcnow()
    reference = Reference(
        article_id=article_id,
        title=data.title,
        url=data.url,
        description=data.description,
        created_at=now,
        updated_at=now,
    )
    session.add(reference)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise translate_integrity_error(exc, missing_message=ARTICLE_NOT_FOUND) from exc
    return reference


async def update_reference(
    session: AsyncSession,
    article_id: int,
    reference_id: int,
    data: ReferenceUpdate,
) -> Reference:
    reference = await _get_reference(session, article_id, reference_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("title") is None:
        changes.pop("title", None)
    for key, value in changes.items():
        setattr(reference, key, value)
    reference.updated_at = utcnow()
    await session.commit()
    return reference


async def delete_reference(session: AsyncSession, article_id: int, reference_id: int) -> None:
    await _get_reference(session, article_id, reference_id)
    await session.execute(delete(Reference).where(Reference.id == reference_id))
    await session.commit()
