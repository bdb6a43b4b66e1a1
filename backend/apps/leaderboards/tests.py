from __future__ import annotations

from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.exceptions import QuotaMissingError, TopLevelReachedError, ValidationError
from apps.common.levels import Level, build_location_key, get_next_level, parse_location_key
from apps.common.tests_utils import (
    TEST_SETTINGS,
    YEAR,
    AuthenticatedAPIMixin,
    make_admin,
    make_judge,
    make_submission,
    make_user,
    score_submission,
    set_quota,
)
from apps.notifications.models import Notification
from apps.submissions.models import Submission, SubmissionAssignment

from .models import Leaderboard, LeaderboardEntry, Quota
from .schemas import QuotaUpsertSchema
from .services import (
    AdvancementService,
    LeaderboardBuildService,
    LeaderboardQueryService,
    QuotaUpsertService,
    finalize_leaderboards,
    resolve_quota,
)

COUNCIL_KEY = build_location_key(Level.COUNCIL, "North", "Alpha")


class LevelHelperTests(TestCase):
    """层级顺序与地区键"""

    def test_next_level_chain(self):
        self.assertEqual(get_next_level(Level.COUNCIL), Level.REGIONAL)
        self.assertEqual(get_next_level(Level.REGIONAL), Level.NATIONAL)
        self.assertIsNone(get_next_level(Level.NATIONAL))
        self.assertIsNone(get_next_level("Galactic"))

    def test_location_key_round_trip_per_level(self):
        self.assertEqual(COUNCIL_KEY, "North::Alpha")
        self.assertEqual(parse_location_key(Level.COUNCIL, COUNCIL_KEY), ("North", "Alpha"))
        self.assertEqual(build_location_key(Level.REGIONAL, "North", "Alpha"), "North")
        self.assertEqual(build_location_key(Level.NATIONAL, "North", "Alpha"), "national")
        self.assertEqual(parse_location_key(Level.NATIONAL, "national"), (None, None))


class ResolveQuotaTests(TestCase):
    """配额裁决纯函数"""

    @staticmethod
    def _entry(rank: int, status: str = LeaderboardEntry.Status.EVALUATED) -> LeaderboardEntry:
        return LeaderboardEntry(rank=rank, status=status)

    def test_splits_by_rank(self):
        entries = [self._entry(3), self._entry(1), self._entry(2), self._entry(4)]
        result = resolve_quota(entries, 2)
        self.assertEqual([item.rank for item in result.promoted], [1, 2])
        self.assertEqual([item.rank for item in result.eliminated], [3, 4])

    def test_fewer_than_quota_promotes_all(self):
        result = resolve_quota([self._entry(1), self._entry(2)], 5)
        self.assertEqual(len(result.promoted), 2)
        self.assertEqual(result.eliminated, [])

    def test_terminal_entries_are_skipped(self):
        entries = [
            self._entry(1, LeaderboardEntry.Status.PROMOTED),
            self._entry(2, LeaderboardEntry.Status.ELIMINATED),
            self._entry(3),
        ]
        result = resolve_quota(entries, 1)
        self.assertEqual([item.rank for item in result.promoted], [3])
        self.assertEqual(len(result.eligible), 1)


@override_settings(**TEST_SETTINGS)
class LeaderboardBuildTests(TestCase):
    """排行榜构建：排序、名次与重建规则"""

    def setUp(self) -> None:
        self.judge = make_judge()
        self.service = LeaderboardBuildService()

    def _build(self, area: str = "Mathematics"):
        return self.service.execute(year=YEAR, area_of_focus=area, level=Level.COUNCIL, location_key=COUNCIL_KEY)

    def test_ranks_dense_and_ties_broken_by_created_at(self):
        late = make_submission(created_offset_minutes=10)
        early = make_submission(created_offset_minutes=1)
        top = make_submission(created_offset_minutes=20)
        score_submission(late, self.judge, 8)
        score_submission(early, self.judge, 8)
        score_submission(top, self.judge, 9)

        board = self._build()
        entries = list(board.entries.order_by("rank"))
        self.assertEqual([entry.rank for entry in entries], [1, 2, 3])
        self.assertEqual([entry.submission_id for entry in entries], [top.id, early.id, late.id])
        self.assertEqual(board.total_submissions, 3)

    def test_zero_scores_and_disqualified_excluded(self):
        scored = make_submission()
        make_submission()
        banned = make_submission()
        score_submission(scored, self.judge, 7)
        score_submission(banned, self.judge, 9)
        banned.disqualified = True
        banned.save(update_fields=["disqualified"])

        board = self._build()
        self.assertEqual(list(board.entries.values_list("submission_id", flat=True)), [scored.id])

    def test_other_council_and_area_not_mixed(self):
        mine = make_submission()
        score_submission(mine, self.judge, 6)
        other_council = make_submission(council="Beta")
        score_submission(other_council, make_judge(council="Beta"), 9)
        other_area = make_submission(area_of_focus="Science")
        score_submission(other_area, self.judge, 9)

        board = self._build()
        self.assertEqual(list(board.entries.values_list("submission_id", flat=True)), [mine.id])

    def test_no_rows_returns_none_without_creating_board(self):
        make_submission()
        self.assertIsNone(self._build())
        self.assertFalse(Leaderboard.objects.exists())

    def test_stale_score_recomputed_from_evaluations(self):
        submission = make_submission()
        score_submission(submission, self.judge, 4)
        self._build()
        score_submission(submission, make_judge(), 8)
        # 人为写坏缓存分数，评分数变化后应按评分重算
        Submission.objects.filter(pk=submission.pk).update(average_score=1)

        board = self._build()
        entry = board.entries.get()
        self.assertEqual(entry.average_score, 6)
        self.assertEqual(entry.total_evaluations, 2)

    def test_finalized_board_not_rebuilt(self):
        first = make_submission()
        score_submission(first, self.judge, 5)
        self._build()
        finalize_leaderboards(year=YEAR, level=Level.COUNCIL, region="North", council="Alpha")

        second = make_submission()
        score_submission(second, self.judge, 9)
        board = self._build()
        self.assertTrue(board.is_finalized)
        self.assertEqual(list(board.entries.values_list("submission_id", flat=True)), [first.id])

    def test_query_service_returns_payload(self):
        submission = make_submission()
        score_submission(submission, self.judge, 7.5)
        payload = LeaderboardQueryService().execute(
            year=YEAR, area_of_focus="Mathematics", level=Level.COUNCIL, location_key=COUNCIL_KEY
        )
        self.assertEqual(payload["entries"][0]["submission_id"], submission.id)
        self.assertEqual(payload["entries"][0]["rank"], 1)

    def test_cache_ttl_follows_runtime_settings(self):
        service = LeaderboardQueryService()
        with self.settings(LEADERBOARD_CACHE_TTL=7):
            self.assertEqual(service._cache_ttl(), 7)
        with self.settings(LEADERBOARD_CACHE_TTL=45):
            self.assertEqual(service._cache_ttl(), 45)
        self.assertEqual(LeaderboardQueryService(cache_ttl_seconds=3)._cache_ttl(), 3)


@override_settings(**TEST_SETTINGS)
class AdvancementServiceTests(TestCase):
    """晋级事务：配额、幂等、分组与终态保持"""

    def setUp(self) -> None:
        self.judge = make_judge()
        self.service = AdvancementService()

    def _seed(self, scores, *, area: str = "Mathematics", council: str = "Alpha"):
        subs = []
        for index, score in enumerate(scores):
            submission = make_submission(area_of_focus=area, council=council, created_offset_minutes=index)
            score_submission(submission, self.judge, score)
            subs.append(submission)
        return subs

    def _advance(self, **kwargs):
        return self.service.execute(year=YEAR, level=Level.COUNCIL, region="North", council="Alpha", **kwargs)

    def test_quota_three_promotes_top_three_and_is_idempotent(self):
        set_quota(Level.COUNCIL, 3)
        subs = self._seed([9, 8, 8, 7, 5])

        result = self._advance()
        self.assertEqual(result.promoted_ids, [subs[0].id, subs[1].id, subs[2].id])
        self.assertEqual(result.eliminated_ids, [subs[3].id, subs[4].id])
        for submission in subs[:3]:
            submission.refresh_from_db()
            self.assertEqual(submission.level, Level.REGIONAL)
            self.assertEqual(submission.status, Submission.Status.PROMOTED)
        for submission in subs[3:]:
            submission.refresh_from_db()
            self.assertEqual(submission.level, Level.COUNCIL)
            self.assertEqual(submission.status, Submission.Status.ELIMINATED)

        again = self._advance()
        self.assertEqual(again.promoted_ids, [])
        self.assertEqual(again.eliminated_ids, [])
        self.assertEqual([group.status for group in again.groups], ["no_eligible"])
        self.assertEqual(Submission.objects.filter(level=Level.REGIONAL).count(), 3)

    def test_two_areas_each_get_quota(self):
        set_quota(Level.COUNCIL, 2)
        self._seed([9, 8, 7], area="Mathematics")
        self._seed([6, 5, 4], area="Science")

        result = self._advance()
        self.assertEqual(len(result.promoted_ids), 4)
        self.assertEqual(len(result.eliminated_ids), 2)
        self.assertEqual(len(result.groups), 2)

    def test_eliminated_stays_excluded_when_rescored(self):
        set_quota(Level.COUNCIL, 1)
        winner, loser = self._seed([9, 5])
        self._advance()

        score_submission(loser, make_judge(), 10)
        result = self._advance()
        loser.refresh_from_db()
        self.assertEqual(result.promoted_ids, [])
        self.assertEqual(loser.status, Submission.Status.ELIMINATED)
        self.assertEqual(loser.level, Level.COUNCIL)
        entry = LeaderboardEntry.objects.get(submission=loser, leaderboard__level=Level.COUNCIL)
        self.assertEqual(entry.status, LeaderboardEntry.Status.ELIMINATED)

    def test_rebuild_restores_promoted_entries_from_submission_state(self):
        set_quota(Level.COUNCIL, 1)
        winner, loser = self._seed([9, 5])
        self._advance()
        # 并发重建读到提交前的数据，把条目写回了 evaluated
        LeaderboardEntry.objects.filter(leaderboard__level=Level.COUNCIL).update(
            status=LeaderboardEntry.Status.EVALUATED
        )

        board = LeaderboardBuildService().execute(
            year=YEAR, area_of_focus="Mathematics", level=Level.COUNCIL, location_key=COUNCIL_KEY
        )
        statuses = dict(board.entries.values_list("submission_id", "status"))
        self.assertEqual(
            statuses,
            {winner.id: LeaderboardEntry.Status.PROMOTED, loser.id: LeaderboardEntry.Status.ELIMINATED},
        )
        self.assertEqual(board.entries.get(submission=winner).rank, 1)

    def test_cache_invalidated_only_after_commit(self):
        set_quota(Level.COUNCIL, 1)
        self._seed([9, 5])
        with self.captureOnCommitCallbacks() as callbacks:
            self._advance()
        self.assertTrue(callbacks)

    def test_missing_quota_mutates_nothing(self):
        subs = self._seed([9, 8])
        with self.assertRaises(QuotaMissingError):
            self._advance()
        for submission in subs:
            submission.refresh_from_db()
            self.assertEqual(submission.status, Submission.Status.EVALUATED)
        self.assertFalse(Leaderboard.objects.exists())

    def test_national_has_no_next_level(self):
        with self.assertRaises(TopLevelReachedError):
            self.service.execute(year=YEAR, level=Level.NATIONAL)

    def test_empty_scope_reports_no_groups(self):
        set_quota(Level.COUNCIL, 2)
        make_submission()
        result = self._advance()
        self.assertEqual(result.groups, [])

    def test_promotion_assigns_regional_judge_and_notifies_teacher(self):
        set_quota(Level.COUNCIL, 1)
        regional_judge = make_judge(Level.REGIONAL, region="North")
        winner, loser = self._seed([9, 3])

        self._advance()
        winner.refresh_from_db()
        self.assertEqual(winner.assignment.judge_id, regional_judge.id)
        self.assertEqual(winner.assignment.level, Level.REGIONAL)
        self.assertTrue(
            Notification.objects.filter(user=winner.teacher, type=Notification.Type.SUBMISSION_PROMOTED).exists()
        )
        notif = Notification.objects.get(user=loser.teacher, type=Notification.Type.SUBMISSION_ELIMINATED)
        self.assertEqual(notif.payload["rank"], 2)
        self.assertEqual(notif.payload["total_in_group"], 2)

    def test_promotion_without_regional_judges_still_commits(self):
        set_quota(Level.COUNCIL, 1)
        winner, _ = self._seed([9, 3])
        self._advance()
        winner.refresh_from_db()
        self.assertEqual(winner.level, Level.REGIONAL)
        self.assertFalse(SubmissionAssignment.objects.filter(submission=winner, level=Level.REGIONAL).exists())


@override_settings(**TEST_SETTINGS)
class QuotaUpsertTests(TestCase):
    def test_upsert_overwrites(self):
        admin = make_admin()
        QuotaUpsertService().execute(admin, QuotaUpsertSchema(year=YEAR, level=Level.COUNCIL, quota=3))
        QuotaUpsertService().execute(admin, QuotaUpsertSchema(year=YEAR, level=Level.COUNCIL, quota=5))
        self.assertEqual(Quota.objects.get(year=YEAR, level=Level.COUNCIL).quota, 5)

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValidationError):
            QuotaUpsertSchema(year=1999, level=Level.COUNCIL, quota=3)
        with self.assertRaises(ValidationError):
            QuotaUpsertSchema(year=YEAR, level="Galactic", quota=3)
        with self.assertRaises(ValidationError):
            QuotaUpsertSchema(year=YEAR, level=Level.COUNCIL, quota=0)


@override_settings(**TEST_SETTINGS)
class LeaderboardAPITests(AuthenticatedAPIMixin, APITestCase):
    """接口冒烟：配额权限、排行榜查询与手动晋级"""

    def setUp(self) -> None:
        self.admin = make_admin()
        self.teacher = make_user()
        self.judge = make_judge()

    def test_teacher_cannot_set_quota(self):
        resp = self.auth_client(self.teacher).post(
            "/api/leaderboards/quotas/", {"year": YEAR, "level": Level.COUNCIL, "quota": 3}, format="json"
        )
        self.assertEqual(resp.status_code, 403)

    def test_admin_sets_quota_and_teacher_lists(self):
        resp = self.auth_client(self.admin).post(
            "/api/leaderboards/quotas/", {"year": YEAR, "level": Level.COUNCIL, "quota": 3}, format="json"
        )
        self.assertEqual(resp.status_code, 201)
        listed = self.auth_client(self.teacher).get("/api/leaderboards/quotas/", {"year": YEAR})
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["data"]["items"][0]["quota"], 3)

    def test_leaderboard_query(self):
        submission = make_submission()
        score_submission(submission, self.judge, 8)
        resp = self.auth_client(self.teacher).get(
            "/api/leaderboards/",
            {"year": YEAR, "area_of_focus": "Mathematics", "level": Level.COUNCIL, "location_key": COUNCIL_KEY},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["entries"][0]["submission_id"], submission.id)

    def test_leaderboard_query_empty_scope_is_404(self):
        resp = self.auth_client(self.teacher).get(
            "/api/leaderboards/",
            {"year": YEAR, "area_of_focus": "History", "level": Level.COUNCIL, "location_key": COUNCIL_KEY},
        )
        self.assertEqual(resp.status_code, 404)

    def test_manual_advance_without_quota_conflicts(self):
        submission = make_submission()
        score_submission(submission, self.judge, 8)
        resp = self.auth_client(self.admin).post(
            "/api/leaderboards/advance/",
            {"year": YEAR, "level": Level.COUNCIL, "region": "North", "council": "Alpha"},
            format="json",
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], QuotaMissingError.default_code)
