import asyncio

import click

from truthlens.config import settings
from truthlens.db.content import (
    create_article,
    create_topic,
    ensure_admin_user,
    get_article_by_slug,
    get_topic_by_slug,
)
from truthlens.db.session import AsyncSessionLocal, async_engine
from truthlens.errors import NotFoundError
from truthlens.models.db import Base
from truthlens.models.schemas import ArticleCreate, ReferenceIn, TopicCreate

SAMPLE_TOPICS = [
    TopicCreate(name="Islamic Beliefs", slug="islamic-beliefs", description="Fundamental beliefs and concepts in Islam"),
    TopicCreate(
        name="Prophetic Traditions",
        slug="prophetic-traditions",
        description="Teachings and traditions of Prophet Muhammad (PBUH)",
    ),
    TopicCreate(
        name="Islamic History", slug="islamic-history", description="Historical events and figures in Islamic history"
    ),
    TopicCreate(
        name="Contemporary Issues",
        slug="contemporary-issues",
        description="Modern challenges and issues facing Muslims today",
    ),
    TopicCreate(name="Spirituality", slug="spirituality", description="Spiritual growth and development in Islam"),
]

# (topic slug, article)
SAMPLE_ARTICLES = [
    (
        "islamic-beliefs",
        ArticleCreate(
            title="The Importance of Salah in Daily Life",
            slug="importance-of-salah-daily-life",
            description="Understanding the significance of prayer in a Muslim's life",
            content=(
                "# The Importance of Salah in Daily Life\n\n"
                "Prayer (Salah) is one of the Five Pillars of Islam and the most important form of worship "
                "in a Muslim's life. Regular prayer keeps the worshipper aware of Allah throughout the day "
                "and builds discipline and community."
            ),
            status="published",
            references=[
                ReferenceIn(title="Quran 29:45", description="Verse mentioning the importance of prayer"),
                ReferenceIn(title="Sahih Bukhari", description="Collection of authentic hadith"),
            ],
        ),
    ),
    (
        "islamic-beliefs",
        ArticleCreate(
            title="Understanding the Quran in Modern Context",
            slug="understanding-quran-modern-context",
            description="Approaches to interpreting the Quran for contemporary Muslims",
            content=(
                "# Understanding the Quran in Modern Context\n\n"
                "Understanding and applying the Quran in different eras requires attention to language, "
                "the context of revelation and the message as a whole."
            ),
            status="published",
            references=[
                ReferenceIn(title="Usul al-Tafsir", description="Principles of Quranic exegesis"),
                ReferenceIn(
                    title="Contemporary Approaches to the Quran",
                    url="https://www.example.com/quran-interpretation",
                    description="Academic article on modern Quranic interpretation",
                ),
            ],
        ),
    ),
    (
        "islamic-history",
        ArticleCreate(
            title="The Life of Prophet Muhammad",
            slug="life-of-prophet-muhammad",
            description="Biography of the final messenger of Islam",
            content=(
                "# The Life of Prophet Muhammad\n\n"
                "Prophet Muhammad was born in Makkah around 570 CE. He received his first revelation at "
                "the age of 40 and spent the remaining 23 years of his life spreading the message of Islam."
            ),
            status="draft",
            references=[ReferenceIn(title="Ar-Raheeq Al-Makhtum", description="Award-winning biography")],
        ),
    ),
]


async def _ensure_topics(session) -> dict[str, int]:
    topic_ids: dict[str, int] = {}
    for data in SAMPLE_TOPICS:
        try:
            topic = await get_topic_by_slug(session, data.slug)
        except NotFoundError:
            topic = await create_topic(session, data)
            click.echo(f"  Created topic '{topic.name}'")
        topic_ids[topic.slug] = topic.id
    return topic_ids


async def _ensure_articles(session, topic_ids: dict[str, int], editor_id: int) -> int:
    created = 0
    for topic_slug, data in SAMPLE_ARTICLES:
        try:
            await get_article_by_slug(session, data.slug)
            continue
        except NotFoundError:
            pass
        article = await create_article(
            session, data.model_copy(update={"topic_id": topic_ids[topic_slug]}), editor_id=editor_id
        )
        click.echo(f"  Created article '{article.title}' ({article.status})")
        created += 1
    return created


async def seed(username: str, with_sample_content: bool) -> None:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        admin, created = await ensure_admin_user(
            session, username, email=settings.admin_email, full_name=settings.admin_full_name
        )
        if created:
            click.echo(f"Created admin user '{admin.username}' (id={admin.id})")
        else:
            click.echo(f"Admin user '{admin.username}' already exists (id={admin.id})")

        if with_sample_content:
            click.echo("Seeding sample content...")
            topic_ids = await _ensure_topics(session)
            count = await _ensure_articles(session, topic_ids, admin.id)
            click.echo(f"Done. Created {count} sample article(s).")

    await async_engine.dispose()


@click.command()
@click.option("--username", default=None, help="Admin username. Defaults to ADMIN_USERNAME from settings.")
@click.option("--with-sample-content", is_flag=True, help="Also seed topics and sample articles.")
def main(username: str | None, with_sample_content: bool) -> None:
    """Bootstrap the admin account and, optionally, sample content. Safe to re-run."""
    asyncio.run(seed(username or settings.admin_username, with_sample_content))


if __name__ == "__main__":
    main()
