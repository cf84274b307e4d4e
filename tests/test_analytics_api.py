import unittest
from datetime import date, datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from fastapi import HTTPException

from truthlens.api import analytics
from truthlens.api.deps import Principal, as_utc, get_client_info, get_principal, require_admin, require_user
from truthlens.db.engagement import ClientInfo
from truthlens.db.reporting import OverviewStatsResult, TopArticleRow
from truthlens.models.schemas import BookmarkEvent, BounceEvent, ShareEvent, ViewEvent

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
ADMIN = Principal(user_id=1, role="admin")


class PrincipalDependencyTests(unittest.TestCase):
    def test_missing_principal_is_anonymous(self) -> None:
        request = SimpleNamespace(state=SimpleNamespace())
        principal = get_principal(request)
        self.assertFalse(principal.is_authenticated)
        self.assertFalse(principal.is_admin)

    def test_principal_is_read_from_request_state(self) -> None:
        request = SimpleNamespace(state=SimpleNamespace(principal=SimpleNamespace(user_id=5, role="admin")))
        self.assertEqual(get_principal(request), Principal(user_id=5, role="admin"))

    def test_require_admin_rejects_anonymous_and_plain_users(self) -> None:
        with self.assertRaises(HTTPException) as anonymous:
            require_user(Principal())
        self.assertEqual(anonymous.exception.status_code, 401)

        with self.assertRaises(HTTPException) as forbidden:
            require_admin(Principal(user_id=2, role="user"))
        self.assertEqual(forbidden.exception.status_code, 403)

        self.assertEqual(require_admin(ADMIN), ADMIN)

    def test_client_info_comes_from_request(self) -> None:
        request = SimpleNamespace(
            client=SimpleNamespace(host="198.51.100.4"),
            headers={"user-agent": "Mozilla/5.0", "referer": "https://news.example/"},
        )
        self.assertEqual(
            get_client_info(request),
            ClientInfo(ip="198.51.100.4", user_agent="Mozilla/5.0", referrer="https://news.example/"),
        )

    def test_naive_datetimes_are_treated_as_utc(self) -> None:
        self.assertEqual(as_utc(datetime(2026, 3, 14, 12, 0)), NOW)
        self.assertIsNone(as_utc(None))


class AnalyticsApiTests(unittest.IsolatedAsyncioTestCase):
    async def test_view_records_principal_and_client(self) -> None:
        view = SimpleNamespace(
            id=1, article_id=7, user_id=None, ip="198.51.100.4", user_agent=None, referrer=None, viewed_at=NOW
        )
        mock_record = AsyncMock(return_value=view)
        client = ClientInfo(ip="198.51.100.4")
        with patch("truthlens.api.analytics.record_view", mock_record):
            response = await analytics.post_view(
                body=ViewEvent(article_id=7), principal=Principal(), client=client, session=AsyncMock()
            )

        self.assertEqual(response.ip, "198.51.100.4")
        self.assertEqual(mock_record.await_args.kwargs, {"user_id": None, "client": client})

    async def test_bounce_passes_optional_sample(self) -> None:
        bounce = SimpleNamespace(
            id=2,
            article_id=7,
            user_id=None,
            ip=None,
            user_agent=None,
            referrer=None,
            time_on_page=None,
            bounced_at=NOW,
        )
        mock_record = AsyncMock(return_value=bounce)
        with patch("truthlens.api.analytics.record_bounce", mock_record):
            response = await analytics.post_bounce(
                body=BounceEvent(article_id=7), principal=Principal(), client=ClientInfo(), session=AsyncMock()
            )

        self.assertIsNone(response.time_on_page)
        self.assertIsNone(mock_record.await_args.kwargs["time_on_page"])

    async def test_share_uses_platform_and_client(self) -> None:
        share = SimpleNamespace(
            id=3,
            article_id=7,
            user_id=4,
            ip="198.51.100.4",
            user_agent="Mozilla/5.0",
            referrer=None,
            platform="twitter",
            shared_at=NOW,
        )
        mock_record = AsyncMock(return_value=share)
        client = ClientInfo(ip="198.51.100.4", user_agent="Mozilla/5.0")
        with patch("truthlens.api.analytics.record_share", mock_record):
            response = await analytics.post_share(
                body=ShareEvent(article_id=7, platform="twitter"),
                principal=Principal(user_id=4, role="user"),
                client=client,
                session=AsyncMock(),
            )

        self.assertEqual(response.platform, "twitter")
        self.assertEqual(response.ip, "198.51.100.4")
        self.assertEqual(mock_record.await_args.args[1:], (7, "twitter"))
        self.assertEqual(mock_record.await_args.kwargs, {"user_id": 4, "client": client})

    async def test_bookmark_passes_client(self) -> None:
        bookmark = SimpleNamespace(
            id=4,
            article_id=7,
            user_id=4,
            ip="198.51.100.4",
            user_agent=None,
            referrer="https://news.example/",
            platform="bookmark",
            shared_at=NOW,
        )
        mock_record = AsyncMock(return_value=bookmark)
        client = ClientInfo(ip="198.51.100.4", referrer="https://news.example/")
        with patch("truthlens.api.analytics.record_bookmark", mock_record):
            response = await analytics.post_bookmark(
                body=BookmarkEvent(article_id=7),
                principal=Principal(user_id=4, role="user"),
                client=client,
                session=AsyncMock(),
            )

        self.assertEqual(response.platform, "bookmark")
        self.assertEqual(response.referrer, "https://news.example/")
        self.assertEqual(mock_record.await_args.kwargs, {"user_id": 4, "client": client})

    async def test_overview_converts_bounds_to_utc(self) -> None:
        stats = OverviewStatsResult(
            total_views=10,
            total_shares=2,
            total_articles=3,
            top_articles=[TopArticleRow(id=7, title="Salah Importance", views=8)],
        )
        mock_overview = AsyncMock(return_value=stats)
        with patch("truthlens.api.analytics.get_overview_stats", mock_overview):
            response = await analytics.get_overview(
                start_date=datetime(2026, 3, 1),
                end_date=None,
                principal=ADMIN,
                session=AsyncMock(),
            )

        self.assertEqual(response.total_views, 10)
        self.assertEqual(response.top_articles[0].title, "Salah Importance")
        self.assertEqual(mock_overview.await_args.args[1], datetime(2026, 3, 1, tzinfo=timezone.utc))

    async def test_article_stats_are_returned_in_order(self) -> None:
        rows = [
            SimpleNamespace(
                article_id=7,
                date=date(2026, 3, day),
                views=day,
                shares=0,
                bounces=1,
                average_time_on_page=20,
                updated_at=NOW,
            )
            for day in (1, 2)
        ]
        with patch("truthlens.api.analytics.get_article_stats", AsyncMock(return_value=rows)):
            response = await analytics.get_article_daily_stats(
                article_id=7, start_date=date(2026, 3, 1), end_date=None, principal=ADMIN, session=AsyncMock()
            )

        self.assertEqual([s.date for s in response], [date(2026, 3, 1), date(2026, 3, 2)])


if __name__ == "__main__":
    unittest.main()
