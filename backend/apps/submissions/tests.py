from __future__ import annotations

from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.common.exceptions import (
    DuplicateEvaluationError,
    EvaluationError,
    PermissionDeniedError,
    RoundStateError,
    SubmissionDisqualifiedError,
    ValidationError,
)
from apps.common.levels import Level
from apps.common.tests_utils import (
    TEST_SETTINGS,
    AuthenticatedAPIMixin,
    YEAR,
    assign,
    make_admin,
    make_judge,
    make_submission,
    make_user,
)
from apps.notifications.models import Notification
from apps.rounds.models import CompetitionRound

from .models import Evaluation, Submission, SubmissionAssignment
from .schemas import DisqualifySchema, EvaluationCreateSchema, ManualAssignSchema
from .services import (
    EvaluationSubmitService,
    JudgeAssignmentService,
    ManualAssignService,
    SubmissionDisqualifyService,
    calculate_average_score,
)


def open_round(level: str = Level.COUNCIL, status: str = CompetitionRound.Status.ACTIVE, **kwargs) -> CompetitionRound:
    """直接落库一个覆盖作品的轮次，评分服务只关心其状态与范围"""
    if level == Level.COUNCIL:
        kwargs.setdefault("region", "North")
        kwargs.setdefault("council", "Alpha")
    return CompetitionRound.objects.create(
        year=YEAR,
        level=level,
        status=status,
        timing_type=CompetitionRound.TimingType.FIXED_TIME,
        start_time=timezone.now() - timedelta(hours=1),
        end_time=timezone.now() + timedelta(hours=1),
        **kwargs,
    )


class AverageScoreTests(TestCase):
    """平均分纯函数"""

    def test_no_evaluations_is_zero(self):
        self.assertEqual(calculate_average_score([]), 0.0)

    def test_mean_of_per_evaluation_average(self):
        items = [Evaluation(average_score=8), Evaluation(average_score=7), Evaluation(average_score=6.5)]
        self.assertEqual(calculate_average_score(items), 7.17)

    def test_falls_back_to_criteria_totals(self):
        items = [Evaluation(scores={"a": 3, "b": 4}), Evaluation(scores={"a": 5, "b": "x"})]
        self.assertEqual(calculate_average_score(items), 6.0)


class EvaluationSchemaTests(TestCase):
    def test_scores_validated(self):
        with self.assertRaises(ValidationError):
            EvaluationCreateSchema(scores={})
        with self.assertRaises(ValidationError):
            EvaluationCreateSchema(scores={"clarity": "high"})
        with self.assertRaises(ValidationError):
            EvaluationCreateSchema(scores={"clarity": -1})
        with self.assertRaises(ValidationError):
            EvaluationCreateSchema(scores={"clarity": True})


@override_settings(**TEST_SETTINGS)
class EvaluationSubmitServiceTests(TestCase):
    """评委评分：指派、轮次与重复校验"""

    def setUp(self) -> None:
        self.judge = make_judge()
        self.submission = make_submission()
        self.schema = EvaluationCreateSchema(scores={"clarity": 8, "delivery": 6}, comments=" ok ")
        self.service = EvaluationSubmitService()

    def test_no_open_round_rejected(self):
        assign(self.submission, self.judge)
        with self.assertRaises(RoundStateError):
            self.service.execute(self.judge, self.submission.id, self.schema)

    def test_unassigned_judge_rejected(self):
        open_round()
        with self.assertRaises(PermissionDeniedError):
            self.service.execute(self.judge, self.submission.id, self.schema)

    def test_teacher_cannot_score(self):
        open_round()
        with self.assertRaises(PermissionDeniedError):
            self.service.execute(make_user(), self.submission.id, self.schema)

    def test_assigned_judge_scores_and_duplicate_rejected(self):
        open_round()
        assign(self.submission, self.judge)
        evaluation = self.service.execute(self.judge, self.submission.id, self.schema)
        self.assertEqual(evaluation.total_score, 14)
        self.assertEqual(evaluation.average_score, 7)
        self.assertEqual(evaluation.level, Level.COUNCIL)
        self.assertEqual(evaluation.comments, "ok")
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.average_score, 7)
        self.assertEqual(self.submission.status, Submission.Status.EVALUATED)

        with self.assertRaises(DuplicateEvaluationError):
            self.service.execute(self.judge, self.submission.id, self.schema)
        self.assertEqual(Evaluation.objects.filter(submission=self.submission).count(), 1)

    def test_ended_round_still_accepts_scores(self):
        open_round(status=CompetitionRound.Status.ENDED)
        assign(self.submission, self.judge)
        self.service.execute(self.judge, self.submission.id, self.schema)
        self.assertTrue(Evaluation.objects.filter(submission=self.submission).exists())

    def test_disqualified_and_eliminated_rejected(self):
        open_round()
        assign(self.submission, self.judge)
        Submission.objects.filter(pk=self.submission.pk).update(disqualified=True)
        with self.assertRaises(SubmissionDisqualifiedError):
            self.service.execute(self.judge, self.submission.id, self.schema)

        eliminated = make_submission(status=Submission.Status.ELIMINATED)
        assign(eliminated, self.judge)
        with self.assertRaises(EvaluationError):
            self.service.execute(self.judge, eliminated.id, self.schema)

    def test_national_judges_cross_evaluate(self):
        open_round(Level.NATIONAL)
        first, second = make_judge(Level.NATIONAL), make_judge(Level.NATIONAL)
        submission = make_submission(level=Level.NATIONAL, status=Submission.Status.PROMOTED)
        self.service.execute(first, submission.id, EvaluationCreateSchema(scores={"overall": 9}))
        self.service.execute(second, submission.id, EvaluationCreateSchema(scores={"overall": 6}))
        submission.refresh_from_db()
        self.assertEqual(submission.average_score, 7.5)

        with self.assertRaises(PermissionDeniedError):
            self.service.execute(self.judge, submission.id, self.schema)


@override_settings(**TEST_SETTINGS)
class JudgeAssignmentTests(TestCase):
    """轮询均衡指派与晋级改派"""

    def test_round_robin_by_load_then_id(self):
        first, second = make_judge(), make_judge()
        service = JudgeAssignmentService()
        picked = [service.execute(make_submission()).judge_id for _ in range(3)]
        self.assertEqual(picked, [first.id, second.id, first.id])
        self.assertEqual(Notification.objects.filter(type=Notification.Type.JUDGE_ASSIGNED).count(), 3)
        self.assertFalse(SubmissionAssignment.objects.filter(judge_notified=False).exists())

    def test_no_judges_or_national_returns_none(self):
        self.assertIsNone(JudgeAssignmentService().execute(make_submission()))
        make_judge(Level.NATIONAL)
        self.assertIsNone(JudgeAssignmentService().execute(make_submission(level=Level.NATIONAL)))
        self.assertFalse(SubmissionAssignment.objects.exists())

    def test_existing_assignment_kept_then_reassigned_after_promotion(self):
        council_judge = make_judge()
        regional_judge = make_judge(Level.REGIONAL)
        submission = make_submission()
        service = JudgeAssignmentService()
        original = service.execute(submission)
        self.assertEqual(service.execute(submission).id, original.id)

        submission.level = Level.REGIONAL
        submission.status = Submission.Status.PROMOTED
        submission.save(update_fields=["level", "status"])
        moved = service.execute(submission)
        self.assertEqual(moved.id, original.id)
        self.assertEqual(moved.judge_id, regional_judge.id)
        self.assertEqual(moved.level, Level.REGIONAL)
        self.assertIsNone(moved.council)
        self.assertNotEqual(moved.judge_id, council_judge.id)

    def test_manual_assign_requires_scope_match(self):
        submission = make_submission()
        outsider = make_judge(council="Beta")
        with self.assertRaises(ValidationError):
            ManualAssignService().execute(submission.id, ManualAssignSchema(judge_id=outsider.id))

        insider = make_judge()
        assignment = ManualAssignService().execute(submission.id, ManualAssignSchema(judge_id=insider.id))
        self.assertEqual(assignment.judge_id, insider.id)

        national = make_submission(level=Level.NATIONAL)
        with self.assertRaises(ValidationError):
            ManualAssignService().execute(national.id, ManualAssignSchema(judge_id=insider.id))


@override_settings(**TEST_SETTINGS)
class DisqualifyTests(TestCase):
    def setUp(self) -> None:
        self.judge = make_judge()
        self.submission = make_submission()
        self.schema = DisqualifySchema(reason="plagiarism")

    def test_admin_disqualifies(self):
        admin = make_admin()
        SubmissionDisqualifyService().execute(admin, self.submission.id, self.schema)
        self.submission.refresh_from_db()
        self.assertTrue(self.submission.disqualified)
        self.assertEqual(self.submission.disqualified_by_id, admin.id)
        with self.assertRaises(SubmissionDisqualifiedError):
            SubmissionDisqualifyService().execute(admin, self.submission.id, self.schema)

    def test_only_assigned_judge(self):
        with self.assertRaises(PermissionDeniedError):
            SubmissionDisqualifyService().execute(self.judge, self.submission.id, self.schema)
        with self.assertRaises(PermissionDeniedError):
            SubmissionDisqualifyService().execute(make_user(), self.submission.id, self.schema)

        assign(self.submission, self.judge)
        SubmissionDisqualifyService().execute(self.judge, self.submission.id, self.schema)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.disqualification_reason, "plagiarism")

    def test_reason_required(self):
        with self.assertRaises(ValidationError):
            DisqualifySchema(reason="  ")


@override_settings(**TEST_SETTINGS)
class SubmissionAPITests(AuthenticatedAPIMixin, APITestCase):
    def setUp(self) -> None:
        self.judge = make_judge()
        self.teacher = make_user()
        self.submission = make_submission(teacher=self.teacher)
        assign(self.submission, self.judge)
        open_round()

    def test_judge_scores_via_api(self):
        resp = self.auth_client(self.judge).post(
            f"/api/submissions/{self.submission.id}/evaluations/",
            {"scores": {"clarity": 9, "delivery": 7}},
            format="json",
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["average_score"], 8)

        resp = self.auth_client(self.judge).post(
            f"/api/submissions/{self.submission.id}/evaluations/", {"scores": {"clarity": 9}}, format="json"
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], DuplicateEvaluationError.default_code)

    def test_teacher_cannot_score(self):
        resp = self.auth_client(self.teacher).post(
            f"/api/submissions/{self.submission.id}/evaluations/", {"scores": {"clarity": 9}}, format="json"
        )
        self.assertEqual(resp.status_code, 403)

    def test_detail_visibility(self):
        resp = self.auth_client(self.teacher).get(f"/api/submissions/{self.submission.id}/")
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn("evaluations", resp.data["data"])
        resp = self.auth_client(make_user()).get(f"/api/submissions/{self.submission.id}/")
        self.assertEqual(resp.status_code, 404)
        resp = self.auth_client(self.judge).get(f"/api/submissions/{self.submission.id}/")
        self.assertEqual(resp.data["data"]["evaluations"], [])
