from __future__ import annotations

from django.test import TestCase

from apps.accounts.models import User
from apps.accounts.repo import UserRepo
from apps.common.exceptions import NotFoundError


class UserModelTests(TestCase):
    """用户模型：邮箱归一化与展示名回退"""

    def test_email_is_lowercased_on_create(self):
        user = User.objects.create_user(username="alice", email="  Alice@Example.COM ", password="x")
        self.assertEqual(user.email, "alice@example.com")

    def test_display_name_falls_back_to_username(self):
        user = User.objects.create_user(username="bob", email="bob@example.com", password="x")
        self.assertEqual(user.name, "bob")
        self.assertEqual(user.display_name, "bob")

    def test_superuser_defaults_to_organizer(self):
        admin = User.objects.create_superuser(username="root", email="root@example.com", password="x")
        self.assertEqual(admin.role, User.Role.ORGANIZER)

    def test_default_role_is_participant(self):
        user = User.objects.create_user(username="carol", email="carol@example.com", password="x")
        self.assertEqual(user.role, User.Role.PARTICIPANT)


class UserRepoTests(TestCase):
    """用户仓储：按邮箱匹配账户时忽略大小写，停用账户不参与匹配"""

    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", email="alice@example.com", password="x")
        cls.bob = User.objects.create_user(username="bob", email="bob@example.com", password="x")
        cls.inactive = User.objects.create_user(
            username="ghost", email="ghost@example.com", password="x", is_active=False
        )

    def test_ids_by_emails_is_case_insensitive(self):
        ids = UserRepo().ids_by_emails(["ALICE@example.com", " bob@EXAMPLE.com ", "nobody@example.com"])
        self.assertEqual(ids, {self.alice.id, self.bob.id})

    def test_ids_by_emails_skips_inactive_and_blank(self):
        self.assertEqual(UserRepo().ids_by_emails(["ghost@example.com", "", None]), set())

    def test_existing_ids_filters_unknown(self):
        ids = UserRepo().existing_ids([self.alice.id, self.inactive.id, 999999])
        self.assertEqual(ids, {self.alice.id})

    def test_get_active_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            UserRepo().get_active(self.inactive.id)
