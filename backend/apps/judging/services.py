from __future__ import annotations

import csv
import io

from django.db.models import QuerySet

from apps.analytics.scoping import Role, ensure_assigned_judge, ensure_event_owner, evaluation_scope, role_of
from apps.common.base.base_service import BaseService
from apps.common.broadcaster import MutationResult
from apps.common.exceptions import PermissionDeniedError
from apps.common.infra.logger import get_logger, logger_extra
from apps.events.repo import EventRepo, SubmissionRepo, TeamRepo

from .models import CRITERIA, Evaluation
from .repo import EvaluationRepo
from .schemas import EvaluationUpsertSchema
from .scoring import REASON_EVALUATION_COMPLETED, REASON_EVALUATION_UPDATED, ScoreRecalculator

# 服务层：评审提交、确认、查询与导出；每次写入后同步重算队伍得分

logger = get_logger(__name__)


def serialize_evaluation(evaluation: Evaluation) -> dict:
    return {
        "id": evaluation.id,
        "event_id": evaluation.event_id,
        "team_id": evaluation.team_id,
        "team_name": evaluation.team.name,
        "judge_id": evaluation.judge_id,
        "judge_name": evaluation.judge.display_name,
        "scores": evaluation.scores,
        "comments": evaluation.comments,
        "status": evaluation.status,
        "created_at": evaluation.created_at,
        "updated_at": evaluation.updated_at,
    }


class EvaluationUpsertService(BaseService[MutationResult[Evaluation]]):
    """
    评委提交/更新评审：
    - 仅评委角色，且必须已被分配到该活动
    - 队伍必须属于该活动
    - 同一 (活动, 队伍, 评委) 只保留一条，重复提交覆盖旧值并回到 pending
    """

    def __init__(
            self,
            event_repo: EventRepo | None = None,
            team_repo: TeamRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            recalculator: ScoreRecalculator | None = None,
    ):
        self.event_repo = event_repo or EventRepo()
        self.team_repo = team_repo or TeamRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.recalculator = recalculator or ScoreRecalculator()

    def validate(self, user, schema: EvaluationUpsertSchema) -> None:
        if role_of(user) is not Role.JUDGE:
            raise PermissionDeniedError()

    def perform(self, user, schema: EvaluationUpsertSchema) -> MutationResult[Evaluation]:
        event = self.event_repo.get_by_id(schema.event_id)
        ensure_assigned_judge(user, event)
        team = self.team_repo.get_in_event(schema.team_id, event.id)
        evaluation, created = self.evaluation_repo.upsert(
            event=event,
            team=team,
            judge=user,
            scores=schema.scores,
            comments=schema.comments,
        )
        outcome = self.recalculator.recompute(event.id, team.id, reason=REASON_EVALUATION_UPDATED)
        logger.info(
            "评审已提交",
            extra=logger_extra(
                {
                    "event_id": event.id,
                    "team_id": team.id,
                    "evaluation_id": evaluation.id,
                    "created": created,
                    "team_score": outcome.score,
                }
            ),
        )
        return MutationResult(instance=self.evaluation_repo.get_by_id(evaluation.id), events=outcome.events)


class EvaluationCompleteService(BaseService[MutationResult[Evaluation]]):
    """
    评审确认：
    - 评委只能确认自己的评审，且仍需处于分配状态
    - 主办方可确认自己活动下的任意评审
    """

    def __init__(
            self,
            evaluation_repo: EvaluationRepo | None = None,
            recalculator: ScoreRecalculator | None = None,
    ):
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.recalculator = recalculator or ScoreRecalculator()

    def perform(self, user, evaluation_id: int) -> MutationResult[Evaluation]:
        evaluation = self.evaluation_repo.get_by_id(evaluation_id)
        role = role_of(user)
        if role is Role.JUDGE:
            if evaluation.judge_id != user.id:
                raise PermissionDeniedError()
            ensure_assigned_judge(user, evaluation.event)
        elif role is Role.ORGANIZER:
            ensure_event_owner(user, evaluation.event)
        else:
            raise PermissionDeniedError()

        evaluation.status = Evaluation.Status.COMPLETE
        evaluation.save(update_fields=["status", "updated_at"])
        outcome = self.recalculator.recompute(
            evaluation.event_id, evaluation.team_id, reason=REASON_EVALUATION_COMPLETED
        )
        logger.info(
            "评审已确认",
            extra=logger_extra(
                {"evaluation_id": evaluation.id, "event_id": evaluation.event_id, "team_score": outcome.score}
            ),
        )
        return MutationResult(instance=evaluation, events=outcome.events)


class EvaluationListService(BaseService[QuerySet[Evaluation]]):
    """
    活动评审列表：主办方看全部，已分配评委只看自己的，其余一律 403
    查询失败直接抛出，不做降级
    """

    atomic_enabled = False

    def __init__(self, event_repo: EventRepo | None = None, evaluation_repo: EvaluationRepo | None = None):
        self.event_repo = event_repo or EventRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()

    def perform(self, user, event_id: int) -> QuerySet[Evaluation]:
        event = self.event_repo.get_by_id(event_id)
        return self.evaluation_repo.scoped(evaluation_scope(user, event))


EXPORT_HEADER = [
    "evaluation_id",
    "team",
    "judge",
    *CRITERIA,
    "average",
    "status",
    "comments",
    "submission_links",
    "updated_at",
]


class EvaluationExportService(BaseService[str]):
    """
    评审导出为 CSV：范围与列表接口一致，附每行子评分均值与队伍作品链接
    """

    atomic_enabled = False

    def __init__(
            self,
            list_service: EvaluationListService | None = None,
            submission_repo: SubmissionRepo | None = None,
    ):
        self.list_service = list_service or EvaluationListService()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, user, event_id: int) -> str:
        evaluations = list(self.list_service.execute(user, event_id))
        links = self.submission_repo.links_by_team(event_id)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_HEADER)
        for evaluation in evaluations:
            present = [v for v in evaluation.scores.values() if v is not None]
            average = round(sum(present) / len(present), 2) if present else ""
            writer.writerow(
                [
                    evaluation.id,
                    evaluation.team.name,
                    evaluation.judge.display_name,
                    *["" if evaluation.scores[name] is None else evaluation.scores[name] for name in CRITERIA],
                    average,
                    evaluation.status,
                    evaluation.comments,
                    " ".join(links.get(evaluation.team_id, [])),
                    evaluation.updated_at.isoformat(),
                ]
            )
        logger.info(
            "评审记录已导出",
            extra=logger_extra({"event_id": event_id, "rows": len(evaluations)}),
        )
        return buffer.getvalue()


def export_filename(event_id: int) -> str:
    return f"event-{event_id}-evaluations.csv"
