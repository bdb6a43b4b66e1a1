from __future__ import annotations

from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.common.exceptions import (
    ConflictError,
    JudgesIncompleteError,
    NotFoundError,
    RoundStateError,
    ValidationError,
)
from apps.common.levels import Level, build_location_key
from apps.common.tests_utils import (
    TEST_SETTINGS,
    YEAR,
    AuthenticatedAPIMixin,
    assign,
    make_admin,
    make_judge,
    make_submission,
    make_user,
    score_submission,
    set_quota,
)
from apps.leaderboards.models import Leaderboard
from apps.leaderboards.services import LeaderboardBuildService, LeaderboardQueryService
from apps.notifications.models import Notification
from apps.submissions.models import Submission

from . import tasks
from .models import CompetitionRound
from .scheduler import RoundScheduler
from .schemas import (
    RoundCreateSchema,
    RoundExtendSchema,
    RoundReminderSchema,
    RoundUpdateSchema,
    RoundVisibilitySchema,
)
from .services import (
    NO_JUDGES_REASON,
    JudgeCompletionGate,
    JudgeProgressService,
    RoundActivateService,
    RoundCloseService,
    RoundCreateService,
    RoundExtendService,
    RoundJudgeReminderService,
    RoundLeaderboardVisibilityService,
    RoundLocationReminderService,
    RoundUpdateService,
)


def create_round(actor=None, **overrides) -> CompetitionRound:
    data = {
        "year": YEAR,
        "level": Level.COUNCIL,
        "region": "North",
        "council": "Alpha",
        "timing_type": CompetitionRound.TimingType.FIXED_TIME,
        "end_time": timezone.now() + timedelta(hours=1),
    }
    data.update(overrides)
    return RoundCreateService().execute(actor, RoundCreateSchema.from_dict(data))


class RoundCreateSchemaTests(TestCase):
    """创建入参校验"""

    def test_fixed_time_requires_end_time(self):
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.COUNCIL, timing_type="fixed_time")

    def test_countdown_requires_positive_duration(self):
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.COUNCIL, timing_type="countdown")
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.COUNCIL, timing_type="countdown", countdown_duration_ms=0)

    def test_location_must_match_level(self):
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.NATIONAL, timing_type="countdown",
                              countdown_duration_ms=1000, region="North")
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.REGIONAL, timing_type="countdown",
                              countdown_duration_ms=1000, region="North", council="Alpha")
        with self.assertRaises(ValidationError):
            RoundCreateSchema(year=YEAR, level=Level.COUNCIL, timing_type="countdown",
                              countdown_duration_ms=1000, council="Alpha")

    def test_camel_case_aliases(self):
        schema = RoundCreateSchema.from_dict(
            {"year": YEAR, "level": "Council", "timingType": "countdown", "countdownDuration": 60000,
             "autoAdvance": False}
        )
        self.assertEqual(schema.countdown_duration, timedelta(minutes=1))
        self.assertFalse(schema.auto_advance)
        self.assertTrue(schema.wait_for_all_judges)

    def test_extend_requires_positive_ms(self):
        with self.assertRaises(ValidationError):
            RoundExtendSchema(extra_ms=-5)
        self.assertEqual(RoundExtendSchema(extra_ms=1500).extra, timedelta(milliseconds=1500))


@override_settings(**TEST_SETTINGS)
class RoundLifecycleTests(TestCase):
    """创建/激活/延期/关闭"""

    def setUp(self) -> None:
        self.admin = make_admin()

    def test_duplicate_open_round_conflicts(self):
        create_round(self.admin)
        with self.assertRaises(ConflictError):
            create_round(self.admin)

    def test_overlapping_scopes_conflict(self):
        alpha = create_round(self.admin)
        # 大区级 Council 轮次覆盖 Alpha 区县
        with self.assertRaises(ConflictError) as ctx:
            create_round(self.admin, council=None)
        self.assertEqual(ctx.exception.extra["round_ids"], [alpha.id])

        create_round(self.admin, council="Beta")
        create_round(self.admin, region="South", council="Gamma")
        create_round(self.admin, year=YEAR + 1)
        self.assertEqual(CompetitionRound.objects.count(), 4)

        regional = create_round(self.admin, level=Level.REGIONAL, council=None)
        with self.assertRaises(ConflictError):
            create_round(self.admin, level=Level.REGIONAL, region=None, council=None)
        self.assertEqual(regional.level, Level.REGIONAL)

    def test_region_wide_round_blocks_council_round(self):
        create_round(self.admin, council=None)
        with self.assertRaises(ConflictError):
            create_round(self.admin, council="Alpha")

    def test_ended_round_still_holds_scope(self):
        make_judge()
        round_obj = create_round(self.admin)
        RoundActivateService().execute(round_obj.id)
        CompetitionRound.objects.filter(pk=round_obj.pk).update(status=CompetitionRound.Status.ENDED)
        with self.assertRaises(ConflictError):
            create_round(self.admin)

        CompetitionRound.objects.filter(pk=round_obj.pk).update(status=CompetitionRound.Status.CLOSED)
        self.assertEqual(create_round(self.admin).status, CompetitionRound.Status.PENDING)

    def test_activate_without_judges_rejected(self):
        round_obj = create_round(self.admin)
        with self.assertRaises(RoundStateError) as ctx:
            RoundActivateService().execute(round_obj.id)
        self.assertEqual(ctx.exception.extra["reason"], NO_JUDGES_REASON)
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.PENDING)

    def test_activate_twice_rejected(self):
        make_judge()
        round_obj = create_round(self.admin)
        RoundActivateService().execute(round_obj.id)
        with self.assertRaises(RoundStateError):
            RoundActivateService().execute(round_obj.id)

    def test_activate_past_fixed_end_rejected(self):
        make_judge()
        round_obj = create_round(self.admin, end_time=timezone.now() - timedelta(minutes=5))
        with self.assertRaises(ValidationError):
            RoundActivateService().execute(round_obj.id)

    def test_countdown_activation_and_extend(self):
        make_judge()
        now = timezone.now()
        round_obj = create_round(self.admin, timing_type="countdown", end_time=None, countdown_duration_ms=7200000)
        submission = make_submission()

        RoundActivateService().execute(round_obj.id, now=now)
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ACTIVE)
        self.assertEqual(round_obj.start_time, now)
        self.assertEqual(round_obj.end_time, now + timedelta(hours=2))
        self.assertEqual(round_obj.pending_submissions_snapshot, [submission.id])

        RoundExtendService().execute(round_obj.id, timedelta(minutes=30))
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.end_time, now + timedelta(hours=2, minutes=30))
        self.assertEqual(round_obj.countdown_duration, timedelta(hours=2, minutes=30))
        self.assertEqual(round_obj.effective_end_time(), round_obj.end_time)

    def test_close_pending_round_rejected(self):
        round_obj = create_round(self.admin)
        with self.assertRaises(RoundStateError):
            RoundCloseService().execute(round_obj.id, actor=self.admin)

    def test_manual_close_blocked_by_pending_evaluation(self):
        judge = make_judge()
        set_quota(Level.COUNCIL, 1)
        round_obj = create_round(self.admin)
        RoundActivateService().execute(round_obj.id)
        assign(make_submission(), judge)

        with self.assertRaises(JudgesIncompleteError) as ctx:
            RoundCloseService().execute(round_obj.id, actor=self.admin)
        self.assertEqual(ctx.exception.extra["pending_count"], 1)
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ACTIVE)

    def test_manual_close_advances_finalizes_and_notifies(self):
        judge = make_judge()
        set_quota(Level.COUNCIL, 1)
        round_obj = create_round(self.admin)
        RoundActivateService().execute(round_obj.id)
        first, second = make_submission(created_offset_minutes=1), make_submission(created_offset_minutes=2)
        for submission, score in ((first, 9), (second, 6)):
            assign(submission, judge)
            score_submission(submission, judge, score)

        stats = RoundCloseService().execute(round_obj.id, actor=self.admin)
        self.assertEqual(stats["promoted"], 1)
        self.assertEqual(stats["eliminated"], 1)
        self.assertEqual(stats["next_level"], Level.REGIONAL)
        self.assertEqual(stats["total_evaluations"], 2)
        self.assertEqual(stats["finalized_leaderboards"], 1)

        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.CLOSED)
        self.assertEqual(round_obj.closed_by_id, self.admin.id)
        self.assertEqual(round_obj.metadata["close_stats"]["promoted"], 1)
        self.assertTrue(Leaderboard.objects.get(level=Level.COUNCIL).is_finalized)
        self.assertTrue(Notification.objects.filter(user=self.admin, type=Notification.Type.ROUND_CLOSED).exists())

        with self.assertRaises(RoundStateError):
            RoundCloseService().execute(round_obj.id, actor=self.admin)
        with self.assertRaises(RoundStateError):
            RoundExtendService().execute(round_obj.id, timedelta(minutes=5))

    def test_national_close_skips_advancement(self):
        judge = make_judge(Level.NATIONAL)
        round_obj = create_round(self.admin, level=Level.NATIONAL, region=None, council=None)
        RoundActivateService().execute(round_obj.id)
        submission = make_submission(level=Level.NATIONAL, status=Submission.Status.PROMOTED)
        score_submission(submission, judge, 7)

        stats = RoundCloseService().execute(round_obj.id, actor=self.admin)
        self.assertIsNone(stats["next_level"])
        self.assertEqual(stats["promoted"], 0)
        submission.refresh_from_db()
        self.assertEqual(submission.level, Level.NATIONAL)
        self.assertTrue(Leaderboard.objects.get(level=Level.NATIONAL).is_finalized)

    def test_close_without_wait_ignores_gate(self):
        judge = make_judge()
        round_obj = create_round(self.admin, wait_for_all_judges=False, auto_advance=False)
        RoundActivateService().execute(round_obj.id)
        assign(make_submission(), judge)

        stats = RoundCloseService().execute(round_obj.id, actor=self.admin)
        self.assertEqual(stats["promoted"], 0)
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.CLOSED)


@override_settings(**TEST_SETTINGS)
class JudgeCompletionGateTests(TestCase):
    """评委完成门禁"""

    def setUp(self) -> None:
        self.gate = JudgeCompletionGate()

    def _check(self, level=Level.COUNCIL, **kwargs):
        scope = {"region": "North", "council": "Alpha"} if level == Level.COUNCIL else {}
        scope.update(kwargs)
        return self.gate.check(level=level, year=YEAR, **scope)

    def test_empty_scope_is_complete(self):
        make_judge()
        result = self._check()
        self.assertTrue(result.complete)
        self.assertEqual(result.total_submissions, 0)

    def test_no_judges_never_complete(self):
        make_submission()
        result = self._check()
        self.assertFalse(result.complete)
        self.assertEqual(result.reason, NO_JUDGES_REASON)
        self.assertEqual(result.pending_count, 1)

    def test_unassigned_submission_is_pending(self):
        make_judge()
        submission = make_submission()
        result = self._check()
        self.assertEqual(result.pending_submission_ids, [submission.id])

    def test_assigned_judge_must_score(self):
        judge = make_judge()
        other = make_judge()
        submission = make_submission()
        assign(submission, judge)
        # 非指派评委的评分不能让门禁通过
        score_submission(submission, other, 9)
        self.assertFalse(self._check().complete)

        score_submission(submission, judge, 8)
        result = self._check()
        self.assertTrue(result.complete)
        self.assertEqual(result.total_judges, 2)

    def test_evaluations_before_since_ignored(self):
        judge = make_judge()
        submission = make_submission()
        assign(submission, judge)
        score_submission(submission, judge, 8)
        result = self._check(since=timezone.now() + timedelta(minutes=1))
        self.assertFalse(result.complete)

    def test_eliminated_and_draft_excluded(self):
        make_judge()
        make_submission(status=Submission.Status.ELIMINATED)
        make_submission(status=Submission.Status.PENDING)
        self.assertTrue(self._check().complete)

    def test_national_requires_every_judge(self):
        first = make_judge(Level.NATIONAL)
        second = make_judge(Level.NATIONAL)
        submission = make_submission(level=Level.NATIONAL, status=Submission.Status.PROMOTED)
        score_submission(submission, first, 8)
        result = self._check(Level.NATIONAL)
        self.assertFalse(result.complete)
        self.assertEqual(result.total_judges, 2)

        score_submission(submission, second, 7)
        self.assertTrue(self._check(Level.NATIONAL).complete)


@override_settings(**TEST_SETTINGS)
class JudgeProgressTests(TestCase):
    def test_per_judge_progress(self):
        admin = make_admin()
        busy = make_judge()
        idle = make_judge()
        round_obj = create_round(admin)
        RoundActivateService().execute(round_obj.id)
        done, todo = make_submission(), make_submission()
        assign(done, busy)
        assign(todo, busy)
        score_submission(done, busy, 7)

        progress = JudgeProgressService().execute(round_obj.id)
        by_judge = {item["judge_id"]: item for item in progress["judges"]}
        self.assertEqual(by_judge[busy.id]["total_assigned"], 2)
        self.assertEqual(by_judge[busy.id]["completed"], 1)
        self.assertEqual(by_judge[busy.id]["percentage"], 50.0)
        self.assertEqual(by_judge[busy.id]["pending_submission_ids"], [todo.id])
        self.assertEqual(by_judge[idle.id]["total_assigned"], 0)
        self.assertEqual(by_judge[idle.id]["percentage"], 100.0)
        self.assertEqual(progress["overall"]["pending_count"], 1)


@override_settings(**TEST_SETTINGS)
class RoundSchedulerTests(TestCase):
    """调度 tick：到期结束、等待门禁、自动关闭"""

    def setUp(self) -> None:
        self.admin = make_admin()
        self.judge = make_judge()
        self.scheduler = RoundScheduler()

    def _active_round(self, **overrides) -> CompetitionRound:
        round_obj = create_round(self.admin, **overrides)
        RoundActivateService().execute(round_obj.id)
        return round_obj

    def test_not_due_round_untouched(self):
        round_obj = self._active_round()
        summary = self.scheduler.tick(timezone.now())
        self.assertEqual(summary["ended"], [])
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ACTIVE)

    def test_waits_for_judges_then_closes(self):
        set_quota(Level.COUNCIL, 1)
        round_obj = self._active_round()
        submission = make_submission()
        assign(submission, self.judge)
        later = timezone.now() + timedelta(hours=2)

        summary = self.scheduler.tick(later)
        self.assertEqual(summary["ended"], [round_obj.id])
        self.assertEqual(summary["waiting"], [round_obj.id])
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ENDED)
        self.assertEqual(round_obj.ended_at, later)
        submission.refresh_from_db()
        self.assertEqual(submission.level, Level.COUNCIL)

        score_submission(submission, self.judge, 8)
        summary = self.scheduler.tick(later + timedelta(minutes=1))
        self.assertEqual(summary["closed"], [round_obj.id])
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.CLOSED)
        submission.refresh_from_db()
        self.assertEqual(submission.level, Level.REGIONAL)
        self.assertEqual(submission.status, Submission.Status.PROMOTED)

    def test_missing_quota_keeps_round_ended(self):
        round_obj = self._active_round()
        submission = make_submission()
        assign(submission, self.judge)
        score_submission(submission, self.judge, 8)

        summary = self.scheduler.tick(timezone.now() + timedelta(hours=2))
        self.assertEqual(summary["failed"], [round_obj.id])
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ENDED)

    def test_extending_ended_round_keeps_it_ended(self):
        round_obj = self._active_round()
        assign(make_submission(), self.judge)
        self.scheduler.tick(timezone.now() + timedelta(hours=2))

        RoundExtendService().execute(round_obj.id, timedelta(hours=3))
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.status, CompetitionRound.Status.ENDED)

    def test_reminders_sent_once_per_interval(self):
        round_obj = self._active_round()
        assign(make_submission(), self.judge)
        now = timezone.now()

        self.assertEqual(self.scheduler.send_reminders(now), 1)
        self.assertEqual(self.scheduler.send_reminders(now + timedelta(minutes=5)), 0)
        notif = Notification.objects.get(user=self.judge, type=Notification.Type.EVALUATION_REMINDER)
        self.assertEqual(notif.payload["pending_count"], 1)
        self.assertEqual(notif.payload["round_id"], round_obj.id)
        round_obj.refresh_from_db()
        self.assertEqual(round_obj.last_reminder_at, now)

    def test_tick_task_uses_local_lock_without_redis(self):
        summary = tasks.tick_rounds()
        self.assertEqual(summary, {"ended": [], "closed": [], "waiting": [], "failed": []})

        tasks._local_tick_lock.acquire()
        try:
            self.assertEqual(tasks.tick_rounds(), {"skipped": True})
        finally:
            tasks._local_tick_lock.release()


@override_settings(**TEST_SETTINGS)
class RoundVisibilityTests(TestCase):
    """冻结可见性：非管理员读取快照"""

    def test_freeze_and_restore(self):
        admin = make_admin()
        judge = make_judge()
        round_obj = create_round(admin)
        RoundActivateService().execute(round_obj.id)
        first = make_submission()
        score_submission(first, judge, 6)
        location_key = build_location_key(Level.COUNCIL, "North", "Alpha")
        LeaderboardBuildService().execute(
            year=YEAR, area_of_focus="Mathematics", level=Level.COUNCIL, location_key=location_key
        )

        RoundLeaderboardVisibilityService().execute(round_obj.id, RoundVisibilitySchema(visibility="frozen"))
        round_obj.refresh_from_db()
        self.assertEqual(len(round_obj.frozen_snapshot["leaderboards"]), 1)

        second = make_submission()
        score_submission(second, make_judge(), 9)
        query = LeaderboardQueryService()
        scope = {"year": YEAR, "area_of_focus": "Mathematics", "level": Level.COUNCIL, "location_key": location_key}
        frozen = query.execute(live=False, **scope)
        self.assertTrue(frozen["frozen"])
        self.assertEqual([item["submission_id"] for item in frozen["entries"]], [first.id])
        live = query.execute(live=True, **scope)
        self.assertEqual(len(live["entries"]), 2)

        RoundLeaderboardVisibilityService().execute(round_obj.id, RoundVisibilitySchema(visibility="live"))
        round_obj.refresh_from_db()
        self.assertIsNone(round_obj.frozen_snapshot)
        self.assertEqual(len(query.execute(live=False, **scope)["entries"]), 2)

    def test_invalid_visibility_rejected(self):
        with self.assertRaises(ValidationError):
            RoundVisibilitySchema(visibility="hidden")


@override_settings(**TEST_SETTINGS)
class RoundUpdateTests(TestCase):
    """修改轮次配置"""

    def setUp(self) -> None:
        self.admin = make_admin()
        make_judge()

    def _update(self, round_obj, **data) -> CompetitionRound:
        return RoundUpdateService().execute(round_obj.id, RoundUpdateSchema.from_dict(data), actor=self.admin)

    def test_update_active_round_settings(self):
        round_obj = create_round(self.admin)
        RoundActivateService().execute(round_obj.id)
        end_time = round_obj.end_time

        updated = self._update(round_obj, autoAdvance=False, reminderFrequency="hourly", metadata={"note": "复核"})
        self.assertEqual(updated.status, CompetitionRound.Status.ACTIVE)
        self.assertFalse(updated.auto_advance)
        self.assertTrue(updated.wait_for_all_judges)
        self.assertEqual(updated.reminder_frequency, CompetitionRound.ReminderFrequency.HOURLY)
        self.assertEqual(updated.metadata, {"note": "复核"})
        self.assertEqual(updated.end_time, end_time)

    def test_ended_and_closed_rounds_rejected(self):
        round_obj = create_round(self.admin)
        for status in (CompetitionRound.Status.ENDED, CompetitionRound.Status.CLOSED):
            CompetitionRound.objects.filter(pk=round_obj.pk).update(status=status)
            with self.assertRaises(RoundStateError):
                self._update(round_obj, autoAdvance=False)
        round_obj.refresh_from_db()
        self.assertTrue(round_obj.auto_advance)

    def test_countdown_duration_recomputes_end_time(self):
        now = timezone.now()
        round_obj = create_round(self.admin, timing_type="countdown", countdown_duration_ms=7200000)
        RoundActivateService().execute(round_obj.id, now=now)

        updated = self._update(round_obj, countdownDuration=10800000)
        self.assertEqual(updated.countdown_duration, timedelta(hours=3))
        self.assertEqual(updated.end_time, now + timedelta(hours=3))
        self.assertEqual(updated.effective_end_time(), updated.end_time)

    def test_pending_countdown_keeps_end_time_unset(self):
        round_obj = create_round(self.admin, timing_type="countdown", countdown_duration_ms=7200000)
        updated = self._update(round_obj, countdownDuration=3600000)
        self.assertEqual(updated.countdown_duration, timedelta(hours=1))
        self.assertIsNone(updated.end_time)

    def test_switch_timing_type(self):
        round_obj = create_round(self.admin, timing_type="countdown", countdown_duration_ms=7200000)
        with self.assertRaises(ValidationError):
            self._update(round_obj, timingType="fixed_time")
        with self.assertRaises(ValidationError):
            self._update(round_obj, timingType="fixed_time", endTime=timezone.now() - timedelta(minutes=1))

        end_time = timezone.now() + timedelta(days=1)
        updated = self._update(round_obj, timingType="fixed_time", endTime=end_time)
        self.assertEqual(updated.timing_type, CompetitionRound.TimingType.FIXED_TIME)
        self.assertEqual(updated.end_time, end_time)
        self.assertIsNone(updated.countdown_duration)


@override_settings(**TEST_SETTINGS)
class RoundReminderTests(TestCase):
    """管理员手动提醒"""

    def setUp(self) -> None:
        self.admin = make_admin()
        self.judge = make_judge()
        self.other_council = make_judge(council="Beta")
        self.regional = make_judge(Level.REGIONAL)
        self.round = create_round(self.admin)

    def test_message_required(self):
        with self.assertRaises(ValidationError):
            RoundReminderSchema(message="   ")
        with self.assertRaises(ValidationError):
            RoundReminderSchema.from_dict({})

    def test_remind_judge_with_custom_message(self):
        schema = RoundReminderSchema(message=" 请在周五前完成评审 ")
        notif = RoundJudgeReminderService().execute(self.round.id, self.judge.id, schema, actor=self.admin)
        self.assertEqual(notif.user_id, self.judge.id)
        self.assertEqual(notif.type, Notification.Type.EVALUATION_REMINDER)
        self.assertEqual(notif.body, "请在周五前完成评审")
        self.assertEqual(notif.payload["round_id"], self.round.id)
        self.assertEqual(notif.payload["year"], YEAR)
        self.assertTrue(notif.payload["custom"])

        # 手动提醒不去重
        RoundJudgeReminderService().execute(self.round.id, self.judge.id, schema)
        self.assertEqual(Notification.objects.filter(user=self.judge).count(), 2)

    def test_remind_judge_requires_judge(self):
        schema = RoundReminderSchema(message="提醒")
        with self.assertRaises(NotFoundError):
            RoundJudgeReminderService().execute(self.round.id, make_user().id, schema)
        with self.assertRaises(NotFoundError):
            RoundJudgeReminderService().execute(self.round.id, 999999, schema)
        self.assertFalse(Notification.objects.exists())

    def test_remind_location_defaults_to_round_scope(self):
        notifs = RoundLocationReminderService().execute(self.round.id, RoundReminderSchema(message="提醒"))
        self.assertEqual([item.user_id for item in notifs], [self.judge.id])

    def test_remind_location_narrows_region_wide_round(self):
        round_obj = create_round(self.admin, year=YEAR + 1, council=None)
        service = RoundLocationReminderService()
        notifs = service.execute(round_obj.id, RoundReminderSchema(message="提醒", council="Beta"))
        self.assertEqual([item.user_id for item in notifs], [self.other_council.id])
        notifs = service.execute(round_obj.id, RoundReminderSchema(message="提醒"))
        self.assertEqual([item.user_id for item in notifs], [self.judge.id, self.other_council.id])

    def test_remind_location_outside_round_rejected(self):
        service = RoundLocationReminderService()
        with self.assertRaises(ValidationError):
            service.execute(self.round.id, RoundReminderSchema(message="提醒", council="Beta"))
        with self.assertRaises(ValidationError):
            service.execute(self.round.id, RoundReminderSchema(message="提醒", region="South"))
        self.assertFalse(Notification.objects.exists())

    def test_closed_round_rejects_reminders(self):
        CompetitionRound.objects.filter(pk=self.round.pk).update(status=CompetitionRound.Status.CLOSED)
        with self.assertRaises(RoundStateError):
            RoundLocationReminderService().execute(self.round.id, RoundReminderSchema(message="提醒"))
        with self.assertRaises(RoundStateError):
            RoundJudgeReminderService().execute(self.round.id, self.judge.id, RoundReminderSchema(message="提醒"))


@override_settings(**TEST_SETTINGS)
class RoundAPITests(AuthenticatedAPIMixin, APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.teacher = make_user()

    def _payload(self) -> dict:
        return {
            "year": YEAR,
            "level": "Council",
            "region": "North",
            "council": "Alpha",
            "timingType": "countdown",
            "countdownDuration": 3600000,
        }

    def test_teacher_cannot_create(self):
        resp = self.auth_client(self.teacher).post("/api/rounds/", self._payload(), format="json")
        self.assertEqual(resp.status_code, 403)

    def test_admin_create_activate_and_close_blocked(self):
        judge = make_judge()
        client = self.auth_client(self.admin)
        resp = client.post("/api/rounds/", self._payload(), format="json")
        self.assertEqual(resp.status_code, 201)
        round_id = resp.data["data"]["id"]
        self.assertEqual(resp.data["data"]["countdown_duration_ms"], 3600000)

        resp = client.post(f"/api/rounds/{round_id}/activate/", format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["status"], "active")

        assign(make_submission(), judge)
        resp = client.post(f"/api/rounds/{round_id}/close/", format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], JudgesIncompleteError.default_code)
        self.assertEqual(resp.data["extra"]["pending_count"], 1)

        resp = client.get(f"/api/rounds/{round_id}/judge-progress/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["judges"][0]["pending"], 1)

    def test_list_filters_by_status(self):
        create_round(self.admin)
        resp = self.auth_client(self.teacher).get("/api/rounds/", {"status": "active"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["items"], [])

    def test_update_and_remind(self):
        judge = make_judge()
        round_obj = create_round(self.admin)
        client = self.auth_client(self.admin)

        resp = self.auth_client(self.teacher).put(f"/api/rounds/{round_obj.id}/", {"reminderEnabled": False}, format="json")
        self.assertEqual(resp.status_code, 403)
        resp = client.put(f"/api/rounds/{round_obj.id}/", {"reminderEnabled": False}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data["data"]["reminder_enabled"])

        resp = client.post(f"/api/rounds/{round_obj.id}/remind-judge/{judge.id}/", {"message": "请尽快评审"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"], {"sent": 1, "judge_ids": [judge.id]})
        resp = client.post(
            f"/api/rounds/{round_obj.id}/remind-judge/{self.teacher.id}/", {"message": "请尽快评审"}, format="json"
        )
        self.assertEqual(resp.status_code, 404)

        resp = client.post(f"/api/rounds/{round_obj.id}/remind-location/", {"message": ""}, format="json")
        self.assertEqual(resp.status_code, 400)
        resp = client.post(f"/api/rounds/{round_obj.id}/remind-location/", {"message": "请尽快评审"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["judge_ids"], [judge.id])
