from __future__ import annotations

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.common.levels import Level
from apps.common.tests_utils import (
    TEST_SETTINGS,
    AuthenticatedAPIMixin,
    make_admin,
    make_judge,
    make_submission,
    make_user,
)

from .models import Notification
from .services import (
    build_dedup_key,
    create_and_push_notification,
    notify_evaluation_reminder,
    notify_round_closed,
    notify_submission_promoted,
)


@override_settings(**TEST_SETTINGS)
class NotificationServiceTests(TestCase):
    def test_dedup_refreshes_and_resets_read(self):
        judge = make_judge()
        first = notify_evaluation_reminder(judge, pending_count=3, level=Level.COUNCIL, round_id=7, bucket="100")
        first.mark_read()

        second = notify_evaluation_reminder(judge, pending_count=1, level=Level.COUNCIL, round_id=7, bucket="100")
        self.assertEqual(first.id, second.id)
        second.refresh_from_db()
        self.assertIsNone(second.read_at)
        self.assertEqual(second.payload["pending_count"], 1)

        notify_evaluation_reminder(judge, pending_count=1, level=Level.COUNCIL, round_id=7, bucket="101")
        self.assertEqual(Notification.objects.filter(user=judge).count(), 2)

    def test_without_dedup_always_creates(self):
        user = make_user()
        create_and_push_notification(user, type=Notification.Type.JUDGE_ASSIGNED, title="a")
        create_and_push_notification(user, type=Notification.Type.JUDGE_ASSIGNED, title="a")
        self.assertEqual(Notification.objects.filter(user=user).count(), 2)

    def test_payload_datetimes_normalized(self):
        admin = make_admin()
        notifs = notify_round_closed([admin], round_id=3, level=Level.COUNCIL, stats={"promoted": 2, "eliminated": 1})
        notifs[0].refresh_from_db()
        self.assertIsInstance(notifs[0].payload["closed_at"], str)
        self.assertEqual(notifs[0].payload["promoted"], 2)

    def test_promoted_payload(self):
        submission = make_submission(average_score=8.5)
        notif = notify_submission_promoted(submission, new_level=Level.REGIONAL, rank=1, total_in_group=4)
        self.assertEqual(notif.user_id, submission.teacher_id)
        self.assertEqual(
            notif.payload,
            {"submission_id": submission.id, "new_level": Level.REGIONAL, "rank": 1,
             "average_score": 8.5, "total_in_group": 4},
        )

    def test_dedup_key_format(self):
        key = build_dedup_key(type="x", submission_id=1, level=Level.REGIONAL)
        self.assertEqual(key, "type:x|submission:1|level:Regional")


@override_settings(**TEST_SETTINGS)
class NotificationAPITests(AuthenticatedAPIMixin, APITestCase):
    def setUp(self) -> None:
        self.user = make_user()
        self.other = make_user()
        for index in range(3):
            create_and_push_notification(self.user, type=Notification.Type.JUDGE_ASSIGNED, title=f"n{index}")
        create_and_push_notification(self.other, type=Notification.Type.JUDGE_ASSIGNED, title="other")

    def test_list_and_unread_filter(self):
        client = self.auth_client(self.user)
        Notification.objects.filter(user=self.user, title="n0").update(read_at=timezone.now())
        resp = client.get("/api/notifications/", {"status": "unread"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data["data"]["items"]), 2)
        resp = client.get("/api/notifications/", {"limit": 1})
        self.assertEqual(len(resp.data["data"]["items"]), 1)

    def test_mark_read_and_count(self):
        client = self.auth_client(self.user)
        notif = Notification.objects.filter(user=self.user).first()
        resp = client.post(f"/api/notifications/{notif.id}/read/")
        self.assertEqual(resp.status_code, 200)
        resp = client.get("/api/notifications/unread-count/")
        self.assertEqual(resp.data["data"]["unread"], 2)

        resp = client.post("/api/notifications/mark-all-read/")
        self.assertEqual(resp.data["data"]["updated"], 2)
        self.assertEqual(Notification.objects.filter(user=self.other, read_at__isnull=True).count(), 1)

    def test_cannot_read_others_notification(self):
        foreign = Notification.objects.get(user=self.other)
        resp = self.auth_client(self.user).post(f"/api/notifications/{foreign.id}/read/")
        self.assertEqual(resp.status_code, 404)

    def test_type_filter_and_breakdown(self):
        client = self.auth_client(self.user)
        notify_evaluation_reminder(self.user, pending_count=2, level=Level.COUNCIL, round_id=1, bucket="1")
        resp = client.get("/api/notifications/", {"type": Notification.Type.EVALUATION_REMINDER})
        self.assertEqual([item["type"] for item in resp.data["data"]["items"]],
                         [Notification.Type.EVALUATION_REMINDER])
        resp = client.get("/api/notifications/unread-count/")
        self.assertEqual(resp.data["data"]["unread"], 4)
        self.assertEqual(resp.data["data"]["by_type"][Notification.Type.JUDGE_ASSIGNED], 3)

        resp = client.post(f"/api/notifications/mark-all-read/?type={Notification.Type.EVALUATION_REMINDER}")
        self.assertEqual(resp.data["data"]["updated"], 1)
        self.assertEqual(Notification.objects.filter(user=self.user, read_at__isnull=True).count(), 3)

    def test_unknown_type_rejected(self):
        resp = self.auth_client(self.user).get("/api/notifications/", {"type": "nope"})
        self.assertEqual(resp.status_code, 400)
