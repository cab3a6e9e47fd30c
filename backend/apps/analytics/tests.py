from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.analytics.schemas import RollupQuerySchema
from apps.analytics.scoping import Role, resolve_event_scope, role_of
from apps.analytics.services import (
    DashboardService,
    categorize_skill,
    conversion_rate,
    round_one_decimal,
    sort_rollup,
)
from apps.common.exceptions import ValidationError
from apps.common.tests_utils import AuthenticatedAPIMixin
from apps.events.models import Event, JudgeAssignment, Registration, RegistrationMember, Submission, Team


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


def register(event: Event, email: str, **kwargs) -> Registration:
    defaults = {"first_name": email.split("@")[0], "personal_email": email}
    defaults.update(kwargs)
    return Registration.objects.create(event=event, **defaults)


class MetricHelperTests(SimpleTestCase):
    """纯函数：转化率、舍入、排序与技能分类"""

    def test_conversion_rate_zero_registrations(self):
        self.assertEqual(conversion_rate(0, 0), 0.0)
        self.assertEqual(conversion_rate(5, 0), 0.0)

    def test_conversion_rate_may_exceed_hundred(self):
        self.assertEqual(conversion_rate(3, 1), 300.0)

    def test_round_one_decimal_half_up(self):
        self.assertEqual(round_one_decimal(200 / 3), 66.7)
        self.assertEqual(round_one_decimal(12.25), 12.3)
        self.assertEqual(round_one_decimal(0), 0.0)

    def test_sort_ties_follow_event_id(self):
        rows = [
            {"id": 3, "title": "c", "metrics": {"registrations": 1}},
            {"id": 1, "title": "a", "metrics": {"registrations": 1}},
            {"id": 2, "title": "b", "metrics": {"registrations": 5}},
        ]
        desc = sort_rollup(list(reversed(rows)), "registrations", "desc")
        asc = sort_rollup(rows, "registrations", "asc")
        self.assertEqual([r["id"] for r in desc], [2, 1, 3])
        self.assertEqual([r["id"] for r in asc], [1, 3, 2])

    def test_categorize_skill(self):
        self.assertEqual(categorize_skill("React"), "frontend")
        self.assertEqual(categorize_skill("Django"), "backend")
        self.assertEqual(categorize_skill("Figma"), "design")
        self.assertEqual(categorize_skill("Flutter"), "mobile")
        self.assertIsNone(categorize_skill("Cooking"))
        self.assertIsNone(categorize_skill(""))

    def test_rollup_schema_rejects_unknown_sort(self):
        with self.assertRaises(ValidationError):
            RollupQuerySchema.from_dict({"sort_by": "popularity"})


class EventScopeTests(TestCase):
    """角色范围解析：主办方 / 评委 / 参赛者 / 匿名"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.other_organizer = User.objects.create_user(
            username="org2", email="org2@example.com", password="x", role="organizer"
        )
        cls.judge = User.objects.create_user(username="j", email="j@example.com", password="x", role="judge")
        cls.participant = User.objects.create_user(username="p", email="p@example.com", password="x")
        cls.newcomer = User.objects.create_user(username="n", email="n@example.com", password="x")

        cls.own = make_event(cls.organizer, title="Own")
        cls.own_draft = make_event(cls.organizer, title="Own draft", status=Event.Status.DRAFT)
        cls.foreign = make_event(cls.other_organizer, title="Foreign")
        JudgeAssignment.objects.create(judge=cls.judge, event=cls.foreign, created_by=cls.other_organizer)

        register(cls.own, "P@Example.com")
        team_reg = register(cls.foreign, "lead@example.com", registration_type="team", team_name="Rocket")
        RegistrationMember.objects.create(registration=team_reg, first_name="p", email="p@example.com")

    def test_role_of(self):
        self.assertIs(role_of(AnonymousUser()), Role.ANONYMOUS)
        self.assertIs(role_of(None), Role.ANONYMOUS)
        self.assertIs(role_of(self.judge), Role.JUDGE)

    def test_organizer_sees_only_own_events(self):
        scope = resolve_event_scope(self.organizer)
        self.assertEqual(scope.event_ids(), sorted([self.own.id, self.own_draft.id]))

    def test_judge_sees_assigned_events(self):
        self.assertEqual(resolve_event_scope(self.judge).event_ids(), [self.foreign.id])

    def test_participant_matches_personal_and_member_email(self):
        scope = resolve_event_scope(self.participant)
        self.assertEqual(scope.event_ids(), sorted([self.own.id, self.foreign.id]))

    def test_participant_without_registrations_gets_empty_scope(self):
        self.assertEqual(resolve_event_scope(self.newcomer).event_ids(), [])

    def test_anonymous_sees_everything(self):
        self.assertEqual(len(resolve_event_scope(AnonymousUser()).event_ids()), 3)

    def test_status_filter_narrows_scope(self):
        scope = resolve_event_scope(self.organizer, status="draft")
        self.assertEqual(scope.event_ids(), [self.own_draft.id])

    def test_invalid_status_rejected(self):
        with self.assertRaises(ValidationError):
            resolve_event_scope(self.organizer, status="archived")


class EventsOverviewAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """活动汇总接口"""

    url = "/api/analytics/events-overview/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.newcomer = User.objects.create_user(username="n", email="n@example.com", password="x")
        cls.empty = make_event(cls.organizer, title="Empty")
        cls.busy = make_event(cls.organizer, title="Busy")
        cls.third = make_event(cls.organizer, title="Third")
        team = Team.objects.create(event=cls.busy, name="Rocket")
        register(cls.busy, "a@example.com")
        for index in range(3):
            Submission.objects.create(team=team, event=cls.busy, title=f"s{index}")
        third_team = Team.objects.create(event=cls.third, name="Comet")
        for email in ("x@example.com", "y@example.com", "z@example.com"):
            register(cls.third, email, created_at=timezone.now() - timedelta(days=3))
        Submission.objects.create(team=third_team, event=cls.third, title="t")

    def _items(self, client, **params):
        resp = client.get(self.url, params)
        self.assertEqual(resp.status_code, 200, resp.content)
        return resp.data["data"]["items"]

    def test_metrics(self):
        items = {row["id"]: row["metrics"] for row in self._items(self.auth_client(self.organizer))}

        self.assertEqual(items[self.empty.id]["conversion"], 0.0)
        self.assertEqual(items[self.busy.id]["registrations"], 1)
        self.assertEqual(items[self.busy.id]["submissions"], 3)
        self.assertEqual(items[self.busy.id]["conversion"], 300.0)
        self.assertEqual(items[self.busy.id]["activity_24h"], 4)
        self.assertEqual(items[self.third.id]["conversion"], 33.3)
        self.assertEqual(items[self.third.id]["activity_24h"], 1)

    def test_sort_limit_and_tie_break(self):
        client = self.auth_client(self.organizer)
        by_registrations = self._items(client, sort_by="registrations", order="desc")
        self.assertEqual([r["id"] for r in by_registrations], [self.third.id, self.busy.id, self.empty.id])

        by_activity = self._items(client, sortBy="activity_24h", order="asc", limit=2)
        self.assertEqual([r["id"] for r in by_activity], [self.empty.id, self.third.id])

    def test_participant_without_registrations_gets_empty_list(self):
        self.assertEqual(self._items(self.auth_client(self.newcomer)), [])

    def test_anonymous_sees_all_events(self):
        self.assertEqual(len(self._items(self.anon_client())), 3)

    def test_invalid_status_returns_400(self):
        resp = self.anon_client().get(self.url, {"status": "archived"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 40002)


class DashboardAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """仪表盘：全局与单个活动，存储异常时降级"""

    url = "/api/analytics/dashboard/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.newcomer = User.objects.create_user(username="n", email="n@example.com", password="x")
        cls.event = make_event(cls.organizer)
        cls.draft = make_event(cls.organizer, title="Draft", status=Event.Status.DRAFT)
        team_reg = register(cls.event, "lead@example.com", registration_type="team", team_name="Rocket")
        RegistrationMember.objects.create(registration=team_reg, first_name="a", email="a@example.com")
        RegistrationMember.objects.create(registration=team_reg, first_name="b", email="b@example.com")
        register(cls.event, "solo@example.com")
        team = Team.objects.create(event=cls.event, name="Rocket")
        Submission.objects.create(team=team, event=cls.event, title="Demo")

    def test_event_totals(self):
        resp = self.auth_client(self.organizer).get(self.url, {"event_id": self.event.id})

        self.assertEqual(resp.status_code, 200, resp.content)
        data = resp.data["data"]
        self.assertEqual(data["total_participants"], 2)
        self.assertEqual(data["teams_formed"], 1)
        self.assertEqual(data["total_submissions"], 1)
        self.assertEqual(data["success_rate"], 50.0)
        self.assertEqual(data["engagement_rate"], 100.0)
        self.assertEqual(data["active_events"], 1)
        self.assertFalse(data["degraded"])
        self.assertNotIn("extra", resp.data)

    def test_global_success_rate_ignores_drafts(self):
        make_event(self.organizer, title="Quiet", status=Event.Status.UPCOMING)
        data = self.anon_client().get(self.url).data["data"]
        self.assertEqual(data["success_rate"], 50.0)
        self.assertEqual(data["total_participants"], 2)

    def test_storage_failure_degrades_to_zero(self):
        with mock.patch.object(DashboardService, "_compute", side_effect=DatabaseError("down")):
            with self.assertLogs("apps.analytics.services", level="WARNING"):
                resp = self.anon_client().get(self.url)

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["extra"]["degraded"])
        data = resp.data["data"]
        self.assertTrue(data["degraded"])
        self.assertEqual(data["total_participants"], 0)
        self.assertEqual(data["teams_formed"], 0)

    def test_event_outside_scope_forbidden(self):
        resp = self.auth_client(self.newcomer).get(self.url, {"event_id": self.event.id})
        self.assertEqual(resp.status_code, 403)

    def test_unknown_event_not_found(self):
        resp = self.anon_client().get(self.url, {"event_id": 999999})
        self.assertEqual(resp.status_code, 404)


class TrendAPITestCase(AuthenticatedAPIMixin, APITestCase):
    url = "/api/analytics/trends/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.event = make_event(cls.organizer)
        now = timezone.now()
        register(cls.event, "a@example.com", created_at=now - timedelta(minutes=5))
        register(cls.event, "b@example.com", created_at=now - timedelta(minutes=10))
        register(cls.event, "c@example.com", created_at=now - timedelta(days=3))
        register(cls.event, "d@example.com", created_at=now - timedelta(days=40))

    def test_timeframes(self):
        client = self.anon_client()
        day = client.get(self.url, {"timeframe": "24h"}).data["data"]
        week = client.get(self.url, {"timeframe": "7d", "event_id": self.event.id}).data["data"]
        month = client.get(self.url).data["data"]

        self.assertEqual(day["total"], 2)
        self.assertTrue(all(0 <= b["bucket"] <= 23 for b in day["buckets"]))
        self.assertEqual(week["total"], 3)
        self.assertTrue(all(1 <= b["bucket"] <= 7 for b in week["buckets"]))
        self.assertEqual(month["timeframe"], "7d")
        self.assertFalse(week["degraded"])

    def test_buckets_ascending(self):
        buckets = self.anon_client().get(self.url, {"timeframe": "30d"}).data["data"]["buckets"]
        self.assertEqual([b["bucket"] for b in buckets], sorted(b["bucket"] for b in buckets))
        self.assertEqual(sum(b["count"] for b in buckets), 3)

    def test_invalid_timeframe(self):
        resp = self.anon_client().get(self.url, {"timeframe": "1y"})
        self.assertEqual(resp.status_code, 400)

    def test_storage_failure_degrades_to_empty_trend(self):
        with mock.patch("django.db.models.query.QuerySet.annotate", side_effect=DatabaseError("down")):
            with self.assertLogs("apps.analytics.services", level="WARNING"):
                resp = self.anon_client().get(self.url, {"timeframe": "24h"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["extra"], {"degraded": True})
        self.assertEqual(resp.data["data"], {"timeframe": "24h", "buckets": [], "total": 0, "degraded": True})


class LeaderboardAPITestCase(AuthenticatedAPIMixin, APITestCase):
    url = "/api/analytics/leaderboard/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.event = make_event(cls.organizer)
        now = timezone.now()
        cls.late = Team.objects.create(event=cls.event, name="Late", score=90, created_at=now)
        cls.early = Team.objects.create(event=cls.event, name="Early", score=90, created_at=now - timedelta(hours=1))
        cls.low = Team.objects.create(event=cls.event, name="Low", score=50, created_at=now - timedelta(hours=2))
        Submission.objects.create(team=cls.low, event=cls.event, title="Best", score=99)
        Submission.objects.create(team=cls.late, event=cls.event, title="Okay", score=40)

    def test_team_ranking_ties_by_creation(self):
        resp = self.anon_client().get(self.url, {"event_id": self.event.id})

        self.assertEqual(resp.status_code, 200, resp.content)
        items = resp.data["data"]["items"]
        self.assertEqual([i["name"] for i in items], ["Early", "Late", "Low"])
        self.assertEqual([i["rank"] for i in items], [1, 2, 3])
        self.assertIsInstance(items[0]["created_at"], str)

    def test_submission_ranking_with_limit(self):
        resp = self.anon_client().get(self.url, {"event_id": self.event.id, "type": "submission", "limit": 1})
        items = resp.data["data"]["items"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["name"], "Best")
        self.assertEqual(items[0]["team_name"], "Low")

    def test_event_id_required(self):
        self.assertEqual(self.anon_client().get(self.url).status_code, 400)
        self.assertEqual(self.anon_client().get(self.url, {"event_id": 999999}).status_code, 404)
        self.assertEqual(
            self.anon_client().get(self.url, {"event_id": self.event.id, "type": "judge"}).status_code, 400
        )

    @override_settings(LEADERBOARD_CACHE_TTL=30)
    def test_cached_board_is_served(self):
        cached = [{"rank": 1, "id": 1, "name": "Cached", "team_id": 1, "team_name": "Cached", "score": 1.0,
                   "created_at": "2024-01-01T00:00:00+00:00"}]
        with mock.patch("apps.analytics.services.redis_client.get_json", return_value=cached) as get_json:
            resp = self.anon_client().get(self.url, {"event_id": self.event.id})
        get_json.assert_called_once()
        self.assertEqual(resp.data["data"]["items"], cached)

    @override_settings(LEADERBOARD_CACHE_TTL=30)
    def test_cache_miss_stores_board(self):
        with mock.patch("apps.analytics.services.redis_client.get_json", return_value=None), \
                mock.patch("apps.analytics.services.redis_client.set_json") as set_json:
            resp = self.anon_client().get(self.url, {"event_id": self.event.id, "limit": 2})
        self.assertEqual(len(resp.data["data"]["items"]), 2)
        stored = set_json.call_args.args[1]
        self.assertEqual(len(stored), 3)
        self.assertEqual(set_json.call_args.kwargs["ex"], 30)


class SkillAndSuggestionAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """技能分布与组队推荐"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.participant = User.objects.create_user(username="p", email="p@example.com", password="x")
        cls.event = make_event(cls.organizer)
        register(
            cls.event, "alice@example.com", first_name="Alice", registration_type="team", team_name="Rocket",
            desired_skills=["React", "Django"],
        )
        register(
            cls.event, "bob@example.com", first_name="Bob", registration_type="team", team_name="Rocket",
            desired_skills=["Figma"], track="Design",
        )
        register(cls.event, "solo@example.com", desired_skills=["React", "Next.js"], track="Backend")

    def test_skill_distribution(self):
        resp = self.auth_client(self.participant).get("/api/analytics/skills/")

        self.assertEqual(resp.status_code, 200, resp.content)
        counts = {c["key"]: c["count"] for c in resp.data["data"]["categories"]}
        self.assertEqual(counts, {"frontend": 2, "backend": 2, "design": 1, "mobile": 0})

    def test_skills_require_login(self):
        self.assertEqual(self.anon_client().get("/api/analytics/skills/").status_code, 401)

    def test_team_suggestions(self):
        resp = self.auth_client(self.participant).get("/api/analytics/suggestions/", {"event_id": self.event.id})

        self.assertEqual(resp.status_code, 200, resp.content)
        suggestions = resp.data["data"]["suggestions"]
        self.assertEqual(len(suggestions), 1)
        rocket = suggestions[0]
        self.assertEqual(rocket["name"], "Rocket")
        self.assertEqual(rocket["leader_name"], "Alice")
        self.assertEqual(rocket["compatibility"], 96)
        self.assertEqual(len(rocket["members"]), 2)
        self.assertIn("Balanced skill set", rocket["strengths"])
        self.assertIn("Complementary experience levels", rocket["strengths"])
