import os
import tempfile
import unittest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from truthlens.cli import rebuild_stats
from truthlens.db.daily_stats import LOCK_DAILY_STATS
from truthlens.db.session import build_sync_engine
from truthlens.models.db import Article, ArticleBounce, ArticleView, Base, DailyArticleStat, SocialShare


def _at(day: int, hour: int) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


class RebuildStatsCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.engine = build_sync_engine(f"sqlite:///{os.path.join(self._tmpdir.name, 'truthlens.db')}")
        Base.metadata.create_all(self.engine)
        self.factory = sessionmaker(self.engine, class_=Session, expire_on_commit=False)

        with self.factory() as session:
            article = Article(title="Salah Importance", slug="salah-importance", content="body")
            session.add(article)
            session.flush()
            self.article_id = article.id
            session.add_all(
                [
                    ArticleView(article_id=article.id, viewed_at=_at(14, 9)),
                    ArticleView(article_id=article.id, viewed_at=_at(14, 10)),
                    ArticleView(article_id=article.id, viewed_at=_at(15, 8)),
                    ArticleBounce(article_id=article.id, time_on_page=10, bounced_at=_at(14, 11)),
                    ArticleBounce(article_id=article.id, time_on_page=None, bounced_at=_at(14, 12)),
                    ArticleBounce(article_id=article.id, time_on_page=21, bounced_at=_at(14, 13)),
                    SocialShare(article_id=article.id, platform="twitter", shared_at=_at(14, 14)),
                    # lagging aggregate: one view and the share never made it in
                    DailyArticleStat(
                        article_id=article.id,
                        date=date(2026, 3, 14),
                        views=1,
                        shares=0,
                        bounces=3,
                        timed_bounces=2,
                        average_time_on_page=16,
                    ),
                    DailyArticleStat(article_id=article.id, date=date(2026, 3, 15), views=1),
                ]
            )
            session.commit()

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()

    def _invoke(self, args: list[str]):
        runner = CliRunner()
        with patch("truthlens.cli.rebuild_stats.Base.metadata.create_all"), patch(
            "truthlens.cli.rebuild_stats.SyncSessionLocal", self.factory
        ):
            return runner.invoke(rebuild_stats.main, args)

    def _stored(self) -> dict[date, tuple[int, int, int, int]]:
        with self.factory() as session:
            rows = session.execute(select(DailyArticleStat)).scalars().all()
            return {row.date: (row.views, row.shares, row.bounces, row.average_time_on_page) for row in rows}

    def test_dry_run_reports_drift_without_writing(self) -> None:
        before = self._stored()

        result = self._invoke([])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("Replayed log into 2 daily row(s); 1 differ from stored stats.", result.output)
        self.assertIn("(1, 0, 3, 16) -> (2, 1, 3, 16)", result.output)
        self.assertIn("Dry-run complete", result.output)
        self.assertEqual(self._stored(), before)

    def test_apply_rewrites_rows_in_range(self) -> None:
        result = self._invoke(["--apply", "--since", "2026-03-14", "--until", "2026-03-14"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("Rewrote 1 daily row(s).", result.output)
        self.assertEqual(
            self._stored(),
            {date(2026, 3, 14): (2, 1, 3, 16), date(2026, 3, 15): (1, 0, 0, 0)},
        )

    def test_matching_stats_are_left_alone(self) -> None:
        self._invoke(["--apply"])

        result = self._invoke(["--apply", "--article-id", str(self.article_id)])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("0 differ", result.output)
        self.assertIn("No updates applied.", result.output)

    def test_apply_reads_and_writes_in_one_session(self) -> None:
        opened = MagicMock(side_effect=self.factory)
        with patch("truthlens.cli.rebuild_stats.Base.metadata.create_all"), patch(
            "truthlens.cli.rebuild_stats.SyncSessionLocal", opened
        ):
            result = CliRunner().invoke(rebuild_stats.main, ["--apply"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertEqual(opened.call_count, 1)
        self.assertIn("Rewrote 2 daily row(s).", result.output)

    def test_postgres_stats_table_is_locked(self) -> None:
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "postgresql"

        rebuild_stats.lock_daily_stats(session)

        session.execute.assert_called_once_with(LOCK_DAILY_STATS)

    def test_sqlite_stats_table_is_not_locked(self) -> None:
        with self.factory() as session:
            with patch.object(session, "execute") as execute:
                rebuild_stats.lock_daily_stats(session)

        execute.assert_not_called()

    def test_since_after_until_is_rejected(self) -> None:
        result = self._invoke(["--since", "2026-03-15", "--until", "2026-03-14"])
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
