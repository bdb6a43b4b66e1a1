from __future__ import annotations

from django.test import TestCase

from apps.accounts.models import User
from apps.accounts.repo import UserRepo
from apps.common.levels import Level
from apps.common.tests_utils import make_judge, make_user


class UserModelTests(TestCase):
    def test_superuser_gets_superadmin_role(self):
        root = User.objects.create_superuser("root", "root@example.com", "Pass1234")
        self.assertEqual(root.role, User.Role.SUPERADMIN)
        self.assertTrue(root.is_admin_role)

    def test_display_name_falls_back_to_username(self):
        user = make_user(username="wang")
        self.assertEqual(user.display_name, "wang")
        user.first_name, user.last_name = "Li", "Wang"
        self.assertEqual(user.display_name, "Li Wang")


class JudgeScopeTests(TestCase):
    """评委评审范围匹配"""

    def setUp(self) -> None:
        self.repo = UserRepo()
        self.council = make_judge()
        self.other_council = make_judge(council="Beta")
        self.regional = make_judge(Level.REGIONAL)
        self.national = make_judge(Level.NATIONAL)
        self.inactive = make_judge(status=User.Status.INACTIVE)
        make_user()

    def test_council_scope_matches_region_and_council(self):
        ids = list(self.repo.judges_for_scope(Level.COUNCIL, "North", "Alpha").values_list("id", flat=True))
        self.assertEqual(ids, [self.council.id])

    def test_regional_scope_ignores_council(self):
        ids = list(self.repo.judges_for_scope(Level.REGIONAL, "North", "Alpha").values_list("id", flat=True))
        self.assertEqual(ids, [self.regional.id])
        self.assertFalse(self.repo.judges_for_scope(Level.REGIONAL, "South").exists())

    def test_national_scope_ignores_location(self):
        ids = list(self.repo.judges_for_scope(Level.NATIONAL, "South", "Gamma").values_list("id", flat=True))
        self.assertEqual(ids, [self.national.id])

    def test_active_judges_excludes_inactive(self):
        ids = set(self.repo.active_judges().values_list("id", flat=True))
        self.assertNotIn(self.inactive.id, ids)
        self.assertEqual(len(ids), 4)
        self.assertIsNone(self.repo.get_judge_or_none(self.inactive.id))
