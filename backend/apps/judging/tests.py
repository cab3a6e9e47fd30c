from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.db.models import QuerySet
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.broadcaster import LeaderboardUpdate
from apps.common.tests_utils import AuthenticatedAPIMixin, RecordingBroadcaster
from apps.events.models import Event, JudgeAssignment, Submission, Team
from apps.judging.models import Evaluation
from apps.judging.repo import EvaluationRepo
from apps.judging.scoring import ScoreRecalculator, compute_team_score, evaluation_contribution
from apps.judging.views import EvaluationCompleteView, EvaluationUpsertView


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


class ScoreFormulaTests(SimpleTestCase):
    """得分公式：纯计算，不访问数据库"""

    def test_two_judges_on_disjoint_criteria(self):
        judge_a = Evaluation(innovation=8, impact=6)
        judge_b = Evaluation(feasibility=9, presentation=7)
        self.assertEqual(evaluation_contribution(judge_a), 70)
        self.assertEqual(evaluation_contribution(judge_b), 80)
        self.assertEqual(compute_team_score([judge_a, judge_b], []), 75.0)

    def test_missing_criteria_are_skipped_not_zero(self):
        self.assertEqual(evaluation_contribution(Evaluation(innovation=9)), 90)

    def test_evaluation_without_any_criterion_contributes_nothing(self):
        self.assertIsNone(evaluation_contribution(Evaluation()))
        self.assertEqual(compute_team_score([Evaluation(), Evaluation(impact=5)], [10]), 50.0)

    def test_team_score_rounded_to_two_decimals(self):
        evaluations = [Evaluation(innovation=7), Evaluation(innovation=8), Evaluation(innovation=8)]
        self.assertEqual(compute_team_score(evaluations, []), 76.67)

    def test_exact_half_cent_rounds_up(self):
        evaluations = [Evaluation(innovation=7, impact=7, feasibility=7, presentation=7) for _ in range(3)]
        evaluations.append(Evaluation(innovation=7, impact=7, feasibility=7, presentation=8))
        # 贡献 70, 70, 70, 72.5，平均 70.625
        self.assertEqual(compute_team_score(evaluations, []), 70.63)

    def test_fallback_to_reviewed_submissions_without_rounding(self):
        self.assertAlmostEqual(compute_team_score([], [70, 80, 85]), 235 / 3)

    def test_no_data_returns_none(self):
        self.assertIsNone(compute_team_score([], []))
        self.assertIsNone(compute_team_score([Evaluation()], []))


class ScoreRecalculatorTests(TestCase):
    """重算：写回 Team.score，并总是返回排行榜刷新事件"""

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.judge_a = User.objects.create_user(username="ja", email="ja@example.com", password="x", role="judge")
        cls.judge_b = User.objects.create_user(username="jb", email="jb@example.com", password="x", role="judge")
        cls.event = make_event(cls.organizer)
        cls.team = Team.objects.create(event=cls.event, name="Rocket", score=42)

    def test_recompute_from_evaluations(self):
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, innovation=8, impact=6)
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_b, feasibility=9, presentation=7)

        outcome = ScoreRecalculator().recompute(self.event.id, self.team.id, reason="evaluation_updated")

        self.team.refresh_from_db()
        self.assertEqual(outcome.score, 75.0)
        self.assertEqual(self.team.score, 75.0)
        self.assertEqual(outcome.events, [LeaderboardUpdate(event_id=self.event.id, reason="evaluation_updated")])

    def test_fallback_uses_only_reviewed_submissions(self):
        Submission.objects.create(team=self.team, event=self.event, title="a", score=60, status="reviewed")
        Submission.objects.create(team=self.team, event=self.event, title="b", score=90, status="reviewed")
        Submission.objects.create(team=self.team, event=self.event, title="c", score=10, status="submitted")

        outcome = ScoreRecalculator().recompute(self.event.id, self.team.id)

        self.team.refresh_from_db()
        self.assertEqual(outcome.score, 75.0)
        self.assertEqual(self.team.score, 75.0)

    def test_score_unchanged_without_data(self):
        outcome = ScoreRecalculator().recompute(self.event.id, self.team.id, reason="submission_scored")
        self.team.refresh_from_db()
        self.assertIsNone(outcome.score)
        self.assertEqual(self.team.score, 42)
        self.assertEqual(outcome.events, [LeaderboardUpdate(event_id=self.event.id, reason="submission_scored")])

    def test_persist_failure_is_swallowed(self):
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, innovation=5)
        with mock.patch.object(QuerySet, "update", side_effect=DatabaseError("boom")):
            with self.assertLogs("apps.judging.scoring", level="ERROR"):
                outcome = ScoreRecalculator().recompute(self.event.id, self.team.id)
        self.team.refresh_from_db()
        self.assertEqual(outcome.score, 50.0)
        self.assertEqual(self.team.score, 42)
        self.assertEqual(len(outcome.events), 1)


class EvaluationAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """
    评审接口：
    - 提交/确认后同步重算并在事务提交后推送
    - 授权或校验失败时既不重算也不推送
    """

    upsert_url = "/api/evaluations/"

    @classmethod
    def setUpTestData(cls):
        cls.organizer = User.objects.create_user(username="org", email="org@example.com", password="x", role="organizer")
        cls.other_organizer = User.objects.create_user(
            username="org2", email="org2@example.com", password="x", role="organizer"
        )
        cls.judge_a = User.objects.create_user(username="ja", email="ja@example.com", password="x", role="judge")
        cls.judge_b = User.objects.create_user(username="jb", email="jb@example.com", password="x", role="judge")
        cls.outsider_judge = User.objects.create_user(username="jx", email="jx@example.com", password="x", role="judge")
        cls.participant = User.objects.create_user(username="p", email="p@example.com", password="x")
        cls.event = make_event(cls.organizer)
        cls.other_event = make_event(cls.other_organizer, title="Other")
        cls.team = Team.objects.create(event=cls.event, name="Rocket")
        cls.foreign_team = Team.objects.create(event=cls.other_event, name="Elsewhere")
        JudgeAssignment.objects.create(judge=cls.judge_a, event=cls.event, created_by=cls.organizer)
        JudgeAssignment.objects.create(judge=cls.judge_b, event=cls.event, created_by=cls.organizer)

    def setUp(self):
        super().setUp()
        self.recorder = RecordingBroadcaster()
        patcher_upsert = mock.patch.object(EvaluationUpsertView, "broadcaster", self.recorder)
        patcher_complete = mock.patch.object(EvaluationCompleteView, "broadcaster", self.recorder)
        patcher_upsert.start()
        patcher_complete.start()
        self.addCleanup(patcher_upsert.stop)
        self.addCleanup(patcher_complete.stop)

    def _upsert(self, judge, scores, *, team=None, comments=""):
        client = self.auth_client(judge)
        with self.captureOnCommitCallbacks(execute=True):
            return client.post(
                self.upsert_url,
                {"event_id": self.event.id, "team_id": (team or self.team).id, "scores": scores, "comments": comments},
                format="json",
            )

    def test_two_judges_produce_mean_score(self):
        resp_a = self._upsert(self.judge_a, {"innovation": 8, "impact": 6})
        resp_b = self._upsert(self.judge_b, {"feasibility": 9, "presentation": 7})

        self.assertEqual(resp_a.status_code, 200, resp_a.content)
        self.assertEqual(resp_b.status_code, 200, resp_b.content)
        self.team.refresh_from_db()
        self.assertEqual(self.team.score, 75.0)
        self.assertEqual(
            self.recorder.leaderboard_calls,
            [(self.event.id, "evaluation_updated"), (self.event.id, "evaluation_updated")],
        )

    def test_second_upsert_replaces_first(self):
        self._upsert(self.judge_a, {"innovation": 2})
        resp = self._upsert(self.judge_a, {"innovation": 9, "impact": 7}, comments="更新")

        self.assertEqual(resp.status_code, 200, resp.content)
        evaluations = Evaluation.objects.filter(event=self.event, team=self.team, judge=self.judge_a)
        self.assertEqual(evaluations.count(), 1)
        self.assertEqual(evaluations.get().comments, "更新")
        self.team.refresh_from_db()
        self.assertEqual(self.team.score, 80.0)

    def test_upsert_resets_status_to_pending(self):
        evaluation = Evaluation.objects.create(
            event=self.event, team=self.team, judge=self.judge_a, innovation=5, status=Evaluation.Status.COMPLETE
        )
        self._upsert(self.judge_a, {"innovation": 6})
        evaluation.refresh_from_db()
        self.assertEqual(evaluation.status, Evaluation.Status.PENDING)

    def test_unknown_criteria_are_ignored(self):
        resp = self._upsert(self.judge_a, {"innovation": 10, "style": 1})
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertNotIn("style", resp.data["data"]["evaluation"]["scores"])
        self.team.refresh_from_db()
        self.assertEqual(self.team.score, 100.0)

    def test_out_of_range_criterion_rejected_without_side_effects(self):
        resp = self._upsert(self.judge_a, {"innovation": 11})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 47001)
        self.assertFalse(Evaluation.objects.exists())
        self.assertEqual(self.recorder.leaderboard_calls, [])

    def test_unassigned_judge_forbidden(self):
        resp = self._upsert(self.outsider_judge, {"innovation": 5})
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Evaluation.objects.exists())
        self.assertEqual(self.recorder.leaderboard_calls, [])

    def test_non_judge_cannot_upsert(self):
        resp = self._upsert(self.organizer, {"innovation": 5})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["code"], 40300)

    def test_team_from_other_event_rejected(self):
        resp = self._upsert(self.judge_a, {"innovation": 5}, team=self.foreign_team)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 46002)
        self.assertEqual(self.recorder.leaderboard_calls, [])

    def test_anonymous_upsert_unauthorized(self):
        resp = self.anon_client().post(self.upsert_url, {}, format="json")
        self.assertEqual(resp.status_code, 401)

    def test_list_scoped_by_role(self):
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, innovation=5)
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_b, innovation=7)
        url = f"/api/evaluations/events/{self.event.id}/"

        organizer_resp = self.auth_client(self.organizer).get(url)
        judge_resp = self.auth_client(self.judge_a).get(url)

        self.assertEqual(organizer_resp.status_code, 200)
        self.assertEqual(len(organizer_resp.data["data"]), 2)
        self.assertEqual(organizer_resp.data["extra"]["total"], 2)
        self.assertEqual([e["judge_id"] for e in judge_resp.data["data"]], [self.judge_a.id])

    def test_list_forbidden_without_assignment_leaks_nothing(self):
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, innovation=5, comments="secret")
        url = f"/api/evaluations/events/{self.event.id}/"

        for user in (self.outsider_judge, self.other_organizer, self.participant):
            resp = self.auth_client(user).get(url)
            self.assertEqual(resp.status_code, 403)
            self.assertIsNone(resp.data["data"])
            self.assertNotIn("extra", resp.data)
            self.assertNotIn("secret", resp.content.decode())

    def test_list_unknown_event_not_found(self):
        resp = self.auth_client(self.organizer).get("/api/evaluations/events/999999/")
        self.assertEqual(resp.status_code, 404)

    def test_list_storage_failure_is_not_degraded(self):
        url = f"/api/evaluations/events/{self.event.id}/"
        with mock.patch.object(EvaluationRepo, "scoped", side_effect=DatabaseError("down")):
            with self.assertLogs("apps.common.exception_handler", level="ERROR"):
                resp = self.auth_client(self.organizer).get(url)

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data["code"], 50000)
        self.assertNotIn("degraded", resp.data.get("extra", {}))

    def test_judge_completes_own_evaluation(self):
        evaluation = Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, impact=6)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.auth_client(self.judge_a).post(f"/api/evaluations/{evaluation.id}/complete/")

        self.assertEqual(resp.status_code, 200, resp.content)
        evaluation.refresh_from_db()
        self.assertEqual(evaluation.status, Evaluation.Status.COMPLETE)
        self.team.refresh_from_db()
        self.assertEqual(self.team.score, 60.0)
        self.assertEqual(self.recorder.leaderboard_calls, [(self.event.id, "evaluation_completed")])

    def test_judge_cannot_complete_others_evaluation(self):
        evaluation = Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, impact=6)
        resp = self.auth_client(self.judge_b).post(f"/api/evaluations/{evaluation.id}/complete/")
        self.assertEqual(resp.status_code, 403)
        evaluation.refresh_from_db()
        self.assertEqual(evaluation.status, Evaluation.Status.PENDING)

    def test_unassigned_judge_cannot_complete_own_evaluation(self):
        evaluation = Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, impact=6)
        JudgeAssignment.objects.filter(judge=self.judge_a).delete()
        resp = self.auth_client(self.judge_a).post(f"/api/evaluations/{evaluation.id}/complete/")
        self.assertEqual(resp.status_code, 403)

    def test_organizer_completes_evaluation_in_own_event(self):
        evaluation = Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, impact=6)
        own = self.auth_client(self.organizer).post(f"/api/evaluations/{evaluation.id}/complete/")
        other = self.auth_client(self.other_organizer).post(f"/api/evaluations/{evaluation.id}/complete/")
        self.assertEqual(own.status_code, 200)
        self.assertEqual(other.status_code, 403)

    def test_export_csv(self):
        Evaluation.objects.create(event=self.event, team=self.team, judge=self.judge_a, innovation=8, impact=6)
        Submission.objects.create(
            team=self.team, event=self.event, title="Demo", repo_url="https://example.com/rocket"
        )
        resp = self.auth_client(self.organizer).get(f"/api/evaluations/events/{self.event.id}/export/")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp["Content-Type"].startswith("text/csv"))
        lines = resp.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith("evaluation_id,team,judge,innovation"))
        self.assertEqual(len(lines), 2)
        self.assertIn("Rocket", lines[1])
        self.assertIn("7.0", lines[1])
        self.assertIn("https://example.com/rocket", lines[1])

    def test_export_forbidden_for_unassigned_judge(self):
        resp = self.auth_client(self.outsider_judge).get(f"/api/evaluations/events/{self.event.id}/export/")
        self.assertEqual(resp.status_code, 403)
