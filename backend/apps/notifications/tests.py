from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.tests_utils import AuthenticatedAPIMixin, RecordingBroadcaster
from apps.events.models import Event, Registration, RegistrationMember, Team
from apps.notifications.models import Notification
from apps.notifications.services import EventRecipientResolver
from apps.notifications.views import EventBroadcastView


def make_event(organizer, **kwargs) -> Event:
    now = timezone.now()
    defaults = {
        "title": "AI Hack",
        "status": Event.Status.ONGOING,
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=1),
    }
    defaults.update(kwargs)
    return Event.objects.create(organizer=organizer, **defaults)


def notify(title: str, *recipients, event=None) -> Notification:
    notification = Notification.objects.create(title=title, event=event)
    notification.recipients.add(*recipients)
    return notification


class NotificationInboxAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """通知列表、未读计数与已读标记"""

    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", email="alice@example.com", password="x")
        cls.bob = User.objects.create_user(username="bob", email="bob@example.com", password="x")
        cls.first = notify("开幕", cls.alice)
        cls.second = notify("提交提醒", cls.alice, cls.bob)
        cls.for_bob = notify("私信", cls.bob)

    def test_list_defaults_to_unread(self):
        self.second.read_by.add(self.alice)
        client = self.auth_client(self.alice)

        unread = client.get("/api/notifications/")
        everything = client.get("/api/notifications/", {"status": "all"})

        self.assertEqual(unread.status_code, 200)
        self.assertEqual([n["id"] for n in unread.data["data"]], [self.first.id])
        self.assertEqual({n["id"]: n["read"] for n in everything.data["data"]}, {self.first.id: False, self.second.id: True})

    def test_list_rejects_unknown_status(self):
        resp = self.auth_client(self.alice).get("/api/notifications/", {"status": "archived"})
        self.assertEqual(resp.status_code, 400)

    def test_unread_count_and_mark_read(self):
        client = self.auth_client(self.alice)
        self.assertEqual(client.get("/api/notifications/unread-count/").data["data"]["unread"], 2)

        resp = client.post(f"/api/notifications/{self.first.id}/read/")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["data"]["notification"]["read"])
        self.assertEqual(client.get("/api/notifications/unread-count/").data["data"]["unread"], 1)
        self.assertFalse(self.first.read_by.filter(pk=self.bob.pk).exists())

    def test_mark_read_for_other_recipient_not_found(self):
        resp = self.auth_client(self.alice).post(f"/api/notifications/{self.for_bob.id}/read/")
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(self.for_bob.read_by.exists())

    def test_mark_all_read(self):
        self.first.read_by.add(self.alice)
        client = self.auth_client(self.alice)

        resp = client.post("/api/notifications/mark-all-read/")
        again = client.post("/api/notifications/mark-all-read/")

        self.assertEqual(resp.data["data"]["updated"], 1)
        self.assertEqual(again.data["data"]["updated"], 0)
        self.assertEqual(client.get("/api/notifications/unread-count/").data["data"]["unread"], 0)
        self.assertEqual(self.auth_client(self.bob).get("/api/notifications/unread-count/").data["data"]["unread"], 2)

    def test_anonymous_inbox_unauthorized(self):
        self.assertEqual(self.anon_client().get("/api/notifications/").status_code, 401)


class EventBroadcastAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """
    活动群发：
    - 接收人 = 队伍成员 ∪ 报名邮箱匹配账户 ∪ 显式用户，去重
    - 每个接收人收到一次推送
    """

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.other_organizer = User.objects.create_user(
            username="org2", email="org2@example.com", password="x", role="organizer"
        )
        cls.member = User.objects.create_user(username="m", email="m@example.com", password="x")
        cls.registrant = User.objects.create_user(username="r", email="R@example.com", password="x")
        cls.teammate = User.objects.create_user(username="t", email="t@example.com", password="x")
        cls.guest = User.objects.create_user(username="g", email="g@example.com", password="x")
        cls.other_member = User.objects.create_user(username="o", email="o@example.com", password="x")

        cls.event = make_event(cls.organizer)
        cls.empty_event = make_event(cls.organizer, title="Empty")
        cls.team = Team.objects.create(event=cls.event, name="Rocket")
        cls.team.members.add(cls.member, cls.registrant)
        cls.other_team = Team.objects.create(event=cls.event, name="Comet")
        cls.other_team.members.add(cls.other_member)
        registration = Registration.objects.create(
            event=cls.event, first_name="R", personal_email="r@example.com", registration_type="team", team_name="Rocket"
        )
        RegistrationMember.objects.create(registration=registration, first_name="T", email="T@example.com")

    def setUp(self):
        super().setUp()
        self.recorder = RecordingBroadcaster()
        patcher = mock.patch.object(EventBroadcastView, "broadcaster", self.recorder)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _broadcast(self, user, event, payload):
        with self.captureOnCommitCallbacks(execute=True):
            return self.auth_client(user).post(f"/api/notifications/events/{event.id}/broadcast/", payload, format="json")

    def test_recipients_are_union_without_duplicates(self):
        resp = self._broadcast(
            self.organizer,
            self.event,
            {"title": "作品提交截止", "type": "alert", "user_ids": [self.guest.id, self.member.id, 999999]},
        )

        self.assertEqual(resp.status_code, 201, resp.content)
        expected = sorted([self.member.id, self.registrant.id, self.teammate.id, self.guest.id, self.other_member.id])
        self.assertEqual(resp.data["data"]["recipients"], len(expected))
        notification = Notification.objects.get()
        self.assertEqual(sorted(notification.recipients.values_list("id", flat=True)), expected)
        self.assertEqual(len(self.recorder.notification_calls), 1)
        recipient_ids, payload = self.recorder.notification_calls[0]
        self.assertEqual(sorted(recipient_ids), expected)
        self.assertEqual(payload["title"], "作品提交截止")
        self.assertIsInstance(payload["created_at"], str)

    def test_team_ids_narrow_team_members_only(self):
        resp = self._broadcast(self.organizer, self.event, {"title": "Rocket 专属", "team_ids": [self.team.id]})

        self.assertEqual(resp.status_code, 201, resp.content)
        notification = Notification.objects.get()
        self.assertEqual(notification.team_id, self.team.id)
        recipients = set(notification.recipients.values_list("id", flat=True))
        self.assertNotIn(self.other_member.id, recipients)
        self.assertIn(self.teammate.id, recipients)

    def test_resolver_matches_registration_emails_case_insensitively(self):
        ids = EventRecipientResolver().resolve(self.event, team_ids=[self.other_team.id], user_ids=[])
        self.assertEqual(ids, sorted([self.other_member.id, self.registrant.id, self.teammate.id]))

    def test_no_recipients_creates_nothing(self):
        resp = self._broadcast(self.organizer, self.empty_event, {"title": "空活动"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"], {"created": False, "recipients": 0, "notification": None})
        self.assertFalse(Notification.objects.exists())
        self.assertEqual(self.recorder.notification_calls, [])

    def test_only_event_owner_can_broadcast(self):
        resp = self._broadcast(self.other_organizer, self.event, {"title": "越权"})
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Notification.objects.exists())

    def test_participant_cannot_broadcast(self):
        resp = self._broadcast(self.member, self.event, {"title": "越权"})
        self.assertEqual(resp.status_code, 403)

    def test_title_required(self):
        resp = self._broadcast(self.organizer, self.event, {"title": "  "})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.recorder.notification_calls, [])
