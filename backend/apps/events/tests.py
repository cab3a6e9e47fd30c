from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.analytics.scoping import is_assigned_judge
from apps.common.exceptions import NotFoundError, TeamNotInEventError
from apps.common.tests_utils import AuthenticatedAPIMixin, RecordingBroadcaster
from apps.events.models import Event, JudgeAssignment, Registration, Submission, Team
from apps.events.repo import SubmissionRepo, TeamRepo
from apps.events.views import SubmissionScoreView


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


class EventRepoTests(TestCase):
    """仓储层：队伍归属校验、已评审作品分数与作品链接"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.event = make_event(cls.organizer)
        cls.other_event = make_event(cls.organizer, title="Other")
        cls.team = Team.objects.create(event=cls.event, name="Rocket")

    def test_get_in_event(self):
        self.assertEqual(TeamRepo().get_in_event(self.team.id, self.event.id), self.team)
        with self.assertRaises(TeamNotInEventError):
            TeamRepo().get_in_event(self.team.id, self.other_event.id)
        with self.assertRaises(NotFoundError):
            TeamRepo().get_in_event(999999, self.event.id)

    def test_upsert_by_name_reuses_team(self):
        team, created = TeamRepo().upsert_by_name(self.event, "Rocket")
        self.assertFalse(created)
        self.assertEqual(team.id, self.team.id)

    def test_reviewed_scores_and_links(self):
        Submission.objects.create(team=self.team, event=self.event, title="a", score=80, status="reviewed",
                                  repo_url="https://example.com/a")
        Submission.objects.create(team=self.team, event=self.event, title="b", score=20)

        repo = SubmissionRepo()
        self.assertEqual(repo.reviewed_scores(self.event.id, self.team.id), [80])
        self.assertEqual(repo.links_by_team(self.event.id), {self.team.id: ["https://example.com/a"]})


class RegistrationAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """报名：团队报名建立队伍并关联已注册账户"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.alice = User.objects.create_user(username="alice", email="Alice@Example.com", password="x")
        cls.bob = User.objects.create_user(username="bob", email="bob@example.com", password="x")
        cls.event = make_event(cls.organizer)
        cls.draft = make_event(cls.organizer, title="Draft", status=Event.Status.DRAFT)

    def _url(self, event: Event) -> str:
        return f"/api/events/{event.id}/registrations/"

    def test_team_registration_links_members(self):
        resp = self.auth_client(self.alice).post(
            self._url(self.event),
            {
                "registration_type": "team",
                "first_name": "Alice",
                "personal_email": "ALICE@example.com",
                "team_name": " Rocket ",
                "desired_skills": ["React", "Django"],
                "members": [
                    {"first_name": "Bob", "email": "bob@example.com"},
                    {"first_name": "Carol", "email": "carol@example.com"},
                ],
            },
            format="json",
        )

        self.assertEqual(resp.status_code, 201, resp.content)
        registration = Registration.objects.get(event=self.event)
        self.assertEqual(registration.personal_email, "alice@example.com")
        self.assertEqual(registration.team_name, "Rocket")
        self.assertEqual(registration.members.count(), 2)
        team = Team.objects.get(event=self.event, name="Rocket")
        self.assertEqual(set(team.members.values_list("id", flat=True)), {self.alice.id, self.bob.id})

    def test_second_registration_joins_existing_team(self):
        Team.objects.create(event=self.event, name="Rocket")
        resp = self.auth_client(self.bob).post(
            self._url(self.event),
            {"registration_type": "team", "first_name": "Bob", "personal_email": "bob@example.com", "team_name": "Rocket"},
            format="json",
        )
        self.assertEqual(resp.status_code, 201, resp.content)
        self.assertEqual(Team.objects.filter(event=self.event).count(), 1)

    def test_individual_registration(self):
        resp = self.auth_client(self.bob).post(
            self._url(self.event),
            {"first_name": "Bob", "personal_email": "bob@example.com", "track": "AI"},
            format="json",
        )
        self.assertEqual(resp.status_code, 201, resp.content)
        self.assertEqual(resp.data["data"]["registration"]["registration_type"], "individual")
        self.assertFalse(Team.objects.exists())

    def test_draft_event_rejects_registration(self):
        resp = self.auth_client(self.bob).post(
            self._url(self.draft),
            {"first_name": "Bob", "personal_email": "bob@example.com"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 46001)
        self.assertFalse(Registration.objects.exists())

    def test_team_registration_requires_team_name(self):
        resp = self.auth_client(self.bob).post(
            self._url(self.event),
            {"registration_type": "team", "first_name": "Bob", "personal_email": "bob@example.com"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 40002)

    def test_invalid_member_email_rejected(self):
        resp = self.auth_client(self.bob).post(
            self._url(self.event),
            {
                "registration_type": "team",
                "first_name": "Bob",
                "personal_email": "bob@example.com",
                "team_name": "Rocket",
                "members": [{"first_name": "X", "email": "not-an-email"}],
            },
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Registration.objects.exists())

    def test_unknown_event_not_found(self):
        resp = self.auth_client(self.bob).post(
            "/api/events/999999/registrations/",
            {"first_name": "Bob", "personal_email": "bob@example.com"},
            format="json",
        )
        self.assertEqual(resp.status_code, 404)

    def test_anonymous_registration_unauthorized(self):
        resp = self.anon_client().post(self._url(self.event), {}, format="json")
        self.assertEqual(resp.status_code, 401)


class SubmissionScoreAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """作品打分：主办方或已分配评委，打分后重算队伍得分并推送"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.other_organizer = User.objects.create_user(
            username="org2", email="org2@example.com", password="x", role="organizer"
        )
        cls.judge = User.objects.create_user(username="j", email="j@example.com", password="x", role="judge")
        cls.outsider_judge = User.objects.create_user(username="jx", email="jx@example.com", password="x", role="judge")
        cls.participant = User.objects.create_user(username="p", email="p@example.com", password="x")
        cls.event = make_event(cls.organizer)
        cls.team = Team.objects.create(event=cls.event, name="Rocket")
        cls.submission = Submission.objects.create(team=cls.team, event=cls.event, title="Demo")
        JudgeAssignment.objects.create(judge=cls.judge, event=cls.event, created_by=cls.organizer)

    def setUp(self):
        super().setUp()
        self.recorder = RecordingBroadcaster()
        patcher = mock.patch.object(SubmissionScoreView, "broadcaster", self.recorder)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _score(self, user, score):
        with self.captureOnCommitCallbacks(execute=True):
            return self.auth_client(user).post(
                f"/api/events/submissions/{self.submission.id}/score/", {"score": score}, format="json"
            )

    def test_assigned_judge_scores_submission(self):
        resp = self._score(self.judge, 88)

        self.assertEqual(resp.status_code, 200, resp.content)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.score, 88)
        self.assertEqual(self.submission.status, Submission.Status.REVIEWED)
        self.team.refresh_from_db()
        self.assertEqual(self.team.score, 88)
        self.assertEqual(self.recorder.leaderboard_calls, [(self.event.id, "submission_scored")])

    def test_organizer_scores_submission(self):
        resp = self._score(self.organizer, 60)
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data["data"]["submission"]["status"], "reviewed")

    def test_out_of_range_score_rejected(self):
        resp = self._score(self.judge, 101)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 47001)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.status, Submission.Status.SUBMITTED)
        self.assertEqual(self.recorder.leaderboard_calls, [])

    def test_unrelated_users_forbidden(self):
        for user in (self.outsider_judge, self.other_organizer, self.participant):
            resp = self._score(user, 50)
            self.assertEqual(resp.status_code, 403)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.status, Submission.Status.SUBMITTED)
        self.assertEqual(self.recorder.leaderboard_calls, [])

    def test_unknown_submission_not_found(self):
        resp = self.auth_client(self.organizer).post("/api/events/submissions/999999/score/", {"score": 5}, format="json")
        self.assertEqual(resp.status_code, 404)


class JudgeAssignAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """评委分配：主办方操作，重复分配幂等"""

    url = "/api/events/judges/assign/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.other_organizer = User.objects.create_user(
            username="org2", email="org2@example.com", password="x", role="organizer"
        )
        cls.judge = User.objects.create_user(username="j", email="j@example.com", password="x", role="judge")
        cls.participant = User.objects.create_user(username="p", email="p@example.com", password="x")
        cls.event = make_event(cls.organizer)

    def test_assign_is_idempotent(self):
        client = self.auth_client(self.organizer)
        first = client.post(self.url, {"event_id": self.event.id, "judge_id": self.judge.id}, format="json")
        second = client.post(self.url, {"eventId": self.event.id, "judgeId": self.judge.id}, format="json")

        self.assertEqual(first.status_code, 201, first.content)
        self.assertTrue(first.data["data"]["created"])
        self.assertEqual(second.status_code, 200)
        self.assertFalse(second.data["data"]["created"])
        self.assertEqual(JudgeAssignment.objects.filter(event=self.event, judge=self.judge).count(), 1)
        self.assertTrue(is_assigned_judge(self.judge, self.event))

    def test_non_judge_rejected(self):
        resp = self.auth_client(self.organizer).post(
            self.url, {"event_id": self.event.id, "judge_id": self.participant.id}, format="json"
        )
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(JudgeAssignment.objects.exists())

    def test_only_event_owner_can_assign(self):
        resp = self.auth_client(self.other_organizer).post(
            self.url, {"event_id": self.event.id, "judge_id": self.judge.id}, format="json"
        )
        self.assertEqual(resp.status_code, 403)

    def test_judge_cannot_assign(self):
        resp = self.auth_client(self.judge).post(
            self.url, {"event_id": self.event.id, "judge_id": self.judge.id}, format="json"
        )
        self.assertEqual(resp.status_code, 403)

    def test_my_events_lists_assigned_only(self):
        make_event(self.organizer, title="Unassigned")
        JudgeAssignment.objects.create(judge=self.judge, event=self.event, created_by=self.organizer)

        resp = self.auth_client(self.judge).get("/api/events/judges/my-events/")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual([e["id"] for e in resp.data["data"]], [self.event.id])
        self.assertEqual(resp.data["extra"]["total"], 1)
