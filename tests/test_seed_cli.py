import unittest
from unittest.mock import patch

from db_support import SqliteTestCase
from sqlalchemy import func, select

from truthlens.cli import seed
from truthlens.db.content import get_user_by_username, list_articles, list_topics
from truthlens.db.versions import list_versions
from truthlens.models.db import User


class SeedCliTests(SqliteTestCase):
    async def _seed(self, username: str, with_sample_content: bool) -> None:
        with patch("truthlens.cli.seed.async_engine", self.engine), patch(
            "truthlens.cli.seed.AsyncSessionLocal", self.Session
        ):
            await seed.seed(username, with_sample_content)

    async def test_admin_only_bootstrap(self) -> None:
        await self._seed("sunnah_keeper", with_sample_content=False)

        async with self.Session() as session:
            admin = await get_user_by_username(session, "sunnah_keeper")
            articles, total = await list_articles(session)
        self.assertEqual(admin.role, "admin")
        self.assertEqual(total, 0)

    async def test_seeding_twice_creates_nothing_new(self) -> None:
        await self._seed("sunnah_keeper", with_sample_content=True)
        await self._seed("sunnah_keeper", with_sample_content=True)

        async with self.Session() as session:
            topics = await list_topics(session)
            articles, total = await list_articles(session, limit=100)
            users = (await session.execute(select(func.count(User.id)))).scalar_one()
            versions = await list_versions(session, articles[0].id)

        self.assertEqual(len(topics), len(seed.SAMPLE_TOPICS))
        self.assertEqual(total, len(seed.SAMPLE_ARTICLES))
        # the editor from the fixture plus the seeded admin
        self.assertEqual(users, 2)
        self.assertEqual([v.version_number for v in versions], [1])
        self.assertTrue(all(a.topic_id is not None for a in articles))


if __name__ == "__main__":
    unittest.main()
