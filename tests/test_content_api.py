import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from truthlens.api import articles, topics, versions
from truthlens.api.deps import Principal
from truthlens.db.versions import RestoreResult
from truthlens.models.schemas import ArticleCreate, ArticleDetail, TopicCreate, VersionCreate

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
ADMIN = Principal(user_id=1, role="admin")


def _reference(reference_id: int, article_id: int = 7) -> SimpleNamespace:
    return SimpleNamespace(
        id=reference_id,
        article_id=article_id,
        title=f"Reference {reference_id}",
        url=None,
        description=None,
        created_at=NOW,
        updated_at=NOW,
    )


def _article(article_id: int = 7, title: str = "Salah Importance", references=None) -> SimpleNamespace:
    return SimpleNamespace(
        id=article_id,
        title=title,
        slug="salah-importance",
        description=None,
        content="Prayer is the second pillar.",
        topic_id=None,
        author_id=1,
        status="published",
        published_at=NOW,
        created_at=NOW,
        updated_at=NOW,
        references=references or [],
    )


def _version(version_id: int, number: int, article_id: int = 7) -> SimpleNamespace:
    return SimpleNamespace(
        id=version_id,
        article_id=article_id,
        title="Salah Importance",
        description=None,
        content=f"body {number}",
        version_number=number,
        created_by_id=1,
        created_at=NOW,
    )


class ArticlesApiTests(unittest.IsolatedAsyncioTestCase):
    async def test_list_returns_page_envelope(self) -> None:
        mock_list = AsyncMock(return_value=([_article(7), _article(8, "Salah History")], 12))
        with patch("truthlens.api.articles.list_articles", mock_list):
            response = await articles.get_articles(
                topic_id=None,
                status="published",
                author_id=None,
                search="salah",
                limit=2,
                offset=4,
                session=AsyncMock(),
            )

        self.assertEqual(response.total, 12)
        self.assertEqual((response.limit, response.offset), (2, 4))
        self.assertEqual([a.id for a in response.articles], [7, 8])
        self.assertEqual(mock_list.await_args.kwargs["search"], "salah")
        self.assertEqual(mock_list.await_args.kwargs["status"], "published")

    async def test_get_article_includes_references(self) -> None:
        article = _article(references=[_reference(1), _reference(2)])
        with patch("truthlens.api.articles.get_article", AsyncMock(return_value=article)):
            response = await articles.get_single_article(article_id=7, session=AsyncMock())

        self.assertIsInstance(response, ArticleDetail)
        self.assertEqual([r.id for r in response.references], [1, 2])

    async def test_create_passes_editor_from_principal(self) -> None:
        mock_create = AsyncMock(return_value=_article())
        body = ArticleCreate(title="Salah Importance", content="Prayer is the second pillar.")
        with patch("truthlens.api.articles.create_article", mock_create):
            response = await articles.post_article(body=body, principal=ADMIN, session=AsyncMock())

        self.assertEqual(response.slug, "salah-importance")
        self.assertEqual(mock_create.await_args.kwargs["editor_id"], 1)

    async def test_delete_reference_returns_message(self) -> None:
        mock_delete = AsyncMock(return_value=None)
        with patch("truthlens.api.articles.delete_reference", mock_delete):
            response = await articles.remove_reference(
                article_id=7, reference_id=3, principal=ADMIN, session=AsyncMock()
            )

        self.assertEqual(response.message, "Reference deleted successfully")
        self.assertEqual(mock_delete.await_args.args[1:], (7, 3))


class TopicsApiTests(unittest.IsolatedAsyncioTestCase):
    async def test_create_topic(self) -> None:
        topic = SimpleNamespace(
            id=3, name="Spirituality", slug="spirituality", description=None, created_at=NOW, updated_at=NOW
        )
        with patch("truthlens.api.topics.create_topic", AsyncMock(return_value=topic)):
            response = await topics.post_topic(body=TopicCreate(name="Spirituality"), principal=ADMIN, session=AsyncMock())

        self.assertEqual(response.slug, "spirituality")


class VersionsApiTests(unittest.IsolatedAsyncioTestCase):
    async def test_create_version_builds_snapshot(self) -> None:
        mock_create = AsyncMock(return_value=_version(11, 4))
        body = VersionCreate(title="Salah Importance", content="body 4")
        with patch("truthlens.api.versions.create_version", mock_create):
            response = await versions.post_version(article_id=7, body=body, principal=ADMIN, session=AsyncMock())

        self.assertEqual(response.version_number, 4)
        snapshot = mock_create.await_args.args[2]
        self.assertEqual((snapshot.title, snapshot.content), ("Salah Importance", "body 4"))

    async def test_restore_returns_article_and_new_version(self) -> None:
        result = RestoreResult(
            article=_article(references=[_reference(1)]),
            restored_from_version=1,
            version=_version(12, 5),
        )
        with patch("truthlens.api.versions.restore_version", AsyncMock(return_value=result)):
            response = await versions.post_restore(article_id=7, version_id=9, principal=ADMIN, session=AsyncMock())

        self.assertEqual(response.restored_from_version, 1)
        self.assertEqual(response.version.version_number, 5)
        self.assertEqual(response.title, "Salah Importance")
        self.assertEqual(len(response.references), 1)


if __name__ == "__main__":
    unittest.main()
