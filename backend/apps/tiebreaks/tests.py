from __future__ import annotations

from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.exceptions import (
    DuplicateVoteError,
    InvalidCandidateError,
    NoVotesError,
    PermissionDeniedError,
    TieBreakResolvedError,
    ValidationError,
)
from apps.common.levels import Level
from apps.common.tests_utils import (
    TEST_SETTINGS,
    YEAR,
    AuthenticatedAPIMixin,
    make_admin,
    make_judge,
    make_submission,
    make_user,
    score_submission,
)
from apps.submissions.models import Submission

from .models import TieBreaking, TieBreakVote
from .repo import TieBreakVoteRepo
from .schemas import TieBreakCreateSchema, TieBreakResolveSchema, TieBreakVoteSchema
from .services import TieBreakCreateService, TieBreakResolveService, TieBreakVoteService


class TieBreakSchemaTests(TestCase):
    def test_needs_two_distinct_candidates(self):
        with self.assertRaises(ValidationError):
            TieBreakCreateSchema(year=YEAR, level=Level.COUNCIL, candidate_ids=[3])
        with self.assertRaises(ValidationError):
            TieBreakCreateSchema(year=YEAR, level=Level.COUNCIL, candidate_ids=[3, 3])

    def test_aliases_and_defaults(self):
        schema = TieBreakCreateSchema.from_dict(
            {"year": YEAR, "level": "Regional", "region": "North", "council": "Alpha",
             "submissionIds": [4, "5", 4], "areaOfFocus": " Science "}
        )
        self.assertEqual(schema.candidate_ids, [4, 5])
        self.assertEqual(schema.quota, 1)
        self.assertIsNone(schema.council)
        self.assertEqual(schema.area_of_focus, "Science")

    def test_resolve_quota_optional(self):
        self.assertIsNone(TieBreakResolveSchema().quota)
        with self.assertRaises(ValidationError):
            TieBreakResolveSchema(quota=0)


@override_settings(**TEST_SETTINGS)
class TieBreakServiceTests(TestCase):
    """发起、投票与裁决"""

    def setUp(self) -> None:
        self.admin = make_admin()
        self.judges = [make_judge() for _ in range(4)]
        self.first = make_submission(created_offset_minutes=1)
        self.second = make_submission(created_offset_minutes=2)
        self.third = make_submission(created_offset_minutes=3)
        score_submission(self.first, self.judges[0], 8)
        score_submission(self.second, self.judges[0], 9)
        score_submission(self.third, self.judges[0], 8)

    def _create(self, ids=None, quota=1) -> TieBreaking:
        ids = ids or [self.first.id, self.second.id, self.third.id]
        schema = TieBreakCreateSchema(
            year=YEAR, level=Level.COUNCIL, region="North", council="Alpha",
            area_of_focus="Mathematics", candidate_ids=ids, quota=quota,
        )
        return TieBreakCreateService().execute(self.admin, schema)

    def _vote(self, tiebreak, judge, submission):
        return TieBreakVoteService().execute(tiebreak.id, judge, TieBreakVoteSchema(submission_id=submission.id))

    def test_create_rejects_invalid_candidates(self):
        banned = make_submission(disqualified=True)
        other_level = make_submission(level=Level.REGIONAL)
        with self.assertRaises(ValidationError) as ctx:
            self._create([self.first.id, banned.id, other_level.id, 999999])
        self.assertEqual(ctx.exception.extra["invalid_ids"], [banned.id, other_level.id, 999999])
        self.assertFalse(TieBreaking.objects.exists())

    def test_create_rejects_candidates_outside_scope(self):
        other_council = make_submission(council="Beta")
        other_area = make_submission(area_of_focus="Science")
        with self.assertRaises(ValidationError) as ctx:
            self._create([self.first.id, other_council.id, other_area.id])
        self.assertEqual(ctx.exception.extra["invalid_ids"], [other_council.id, other_area.id])
        self.assertFalse(TieBreaking.objects.exists())

    def test_create_sets_candidates(self):
        tiebreak = self._create()
        self.assertEqual(tiebreak.status, TieBreaking.Status.ACTIVE)
        self.assertEqual(tiebreak.location_key, "North::Alpha")
        self.assertEqual(
            sorted(tiebreak.candidates.values_list("id", flat=True)),
            [self.first.id, self.second.id, self.third.id],
        )

    def test_duplicate_vote_rejected_and_tally_unchanged(self):
        tiebreak = self._create()
        self._vote(tiebreak, self.judges[0], self.first)
        with self.assertRaises(DuplicateVoteError):
            self._vote(tiebreak, self.judges[0], self.second)
        self.assertEqual(TieBreakVoteRepo().tally(tiebreak), {self.first.id: 1})

    def test_non_candidate_vote_rejected(self):
        tiebreak = self._create([self.first.id, self.second.id])
        with self.assertRaises(InvalidCandidateError):
            self._vote(tiebreak, self.judges[0], self.third)
        self.assertFalse(TieBreakVote.objects.exists())

    def test_judge_of_other_level_cannot_vote(self):
        tiebreak = self._create()
        with self.assertRaises(PermissionDeniedError):
            self._vote(tiebreak, make_judge(Level.REGIONAL), self.first)
        with self.assertRaises(PermissionDeniedError):
            self._vote(tiebreak, make_user(), self.first)

    def test_resolve_without_votes(self):
        tiebreak = self._create()
        with self.assertRaises(NoVotesError):
            TieBreakResolveService().execute(tiebreak.id)
        tiebreak.refresh_from_db()
        self.assertEqual(tiebreak.status, TieBreaking.Status.ACTIVE)

    def test_resolve_orders_by_votes_then_score(self):
        tiebreak = self._create(quota=2)
        self._vote(tiebreak, self.judges[0], self.third)
        self._vote(tiebreak, self.judges[1], self.third)
        self._vote(tiebreak, self.judges[2], self.first)
        self._vote(tiebreak, self.judges[3], self.second)

        resolved = TieBreakResolveService().execute(tiebreak.id, actor=self.admin)
        self.assertEqual(resolved.status, TieBreaking.Status.RESOLVED)
        self.assertEqual(resolved.winners, [self.third.id, self.second.id])
        self.assertEqual([item["submission_id"] for item in resolved.results],
                         [self.third.id, self.second.id, self.first.id])
        self.assertEqual([item["votes"] for item in resolved.results], [2, 1, 1])
        self.assertEqual(resolved.resolved_by_id, self.admin.id)

        # 裁决只记录结果，不修改作品
        for submission in (self.first, self.second, self.third):
            submission.refresh_from_db()
            self.assertEqual(submission.status, Submission.Status.EVALUATED)
            self.assertEqual(submission.level, Level.COUNCIL)

    def test_equal_votes_and_scores_fall_back_to_created_at(self):
        tiebreak = self._create([self.third.id, self.first.id])
        self._vote(tiebreak, self.judges[0], self.third)
        self._vote(tiebreak, self.judges[1], self.first)
        resolved = TieBreakResolveService().execute(tiebreak.id)
        self.assertEqual(resolved.winners, [self.first.id])

    def test_quota_larger_than_candidates(self):
        tiebreak = self._create([self.first.id, self.second.id])
        self._vote(tiebreak, self.judges[0], self.first)
        resolved = TieBreakResolveService().execute(tiebreak.id, TieBreakResolveSchema(quota=5))
        self.assertEqual(len(resolved.winners), 2)

    def test_resolved_tiebreak_rejects_votes_and_resolve(self):
        tiebreak = self._create()
        self._vote(tiebreak, self.judges[0], self.first)
        TieBreakResolveService().execute(tiebreak.id)
        with self.assertRaises(TieBreakResolvedError):
            self._vote(tiebreak, self.judges[1], self.first)
        with self.assertRaises(TieBreakResolvedError):
            TieBreakResolveService().execute(tiebreak.id)


@override_settings(**TEST_SETTINGS)
class TieBreakAPITests(AuthenticatedAPIMixin, APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.judge = make_judge()
        self.teacher = make_user()
        self.subs = [make_submission(created_offset_minutes=i) for i in range(2)]

    def _create(self):
        return self.auth_client(self.admin).post(
            "/api/tiebreaks/",
            {"year": YEAR, "level": "Council", "region": "North", "council": "Alpha",
             "areaOfFocus": "Mathematics", "submissionIds": [item.id for item in self.subs]},
            format="json",
        )

    def test_full_flow(self):
        resp = self._create()
        self.assertEqual(resp.status_code, 201)
        tiebreak_id = resp.data["data"]["id"]

        resp = self.auth_client(self.teacher).post(
            f"/api/tiebreaks/{tiebreak_id}/votes/", {"submissionId": self.subs[1].id}, format="json"
        )
        self.assertEqual(resp.status_code, 403)

        resp = self.auth_client(self.judge).post(
            f"/api/tiebreaks/{tiebreak_id}/votes/", {"submissionId": self.subs[1].id}, format="json"
        )
        self.assertEqual(resp.status_code, 201)
        resp = self.auth_client(self.judge).post(
            f"/api/tiebreaks/{tiebreak_id}/votes/", {"submissionId": self.subs[0].id}, format="json"
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], DuplicateVoteError.default_code)

        detail = self.auth_client(self.teacher).get(f"/api/tiebreaks/{tiebreak_id}/")
        self.assertEqual(detail.data["data"]["total_votes"], 1)

        resp = self.auth_client(self.admin).post(f"/api/tiebreaks/{tiebreak_id}/resolve/", {}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["winners"], [self.subs[1].id])

    def test_teacher_cannot_create(self):
        resp = self.auth_client(self.teacher).post(
            "/api/tiebreaks/",
            {"year": YEAR, "level": "Council", "submissionIds": [item.id for item in self.subs]},
            format="json",
        )
        self.assertEqual(resp.status_code, 403)
