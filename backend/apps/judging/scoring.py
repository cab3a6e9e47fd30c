# -*- coding: utf-8 -*-
"""
队伍得分重算（ScoreRecalculator）

得分规则：
1. 读取 (活动, 队伍) 下全部评审记录
2. 每条评审：已打的子评分取平均再 ×10（0-10 映射到 0-100），未打的项跳过，不按 0 计
3. 至少一条评审有分：队伍得分 = 各评审贡献的平均，四舍五入保留两位小数（半数向上）
4. 否则回退到该队伍已评审（reviewed）作品得分的平均；两者都没有时保持原分不变
5. 只有算出分数才写库，写库在独立保存点中进行，失败只记日志，不影响触发它的写操作
6. 无论写库成功与否都返回排行榜刷新事件，由调用方在事务提交后推送

重算本身不接触任何推送通道，只返回事件列表
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from statistics import fmean
from typing import Iterable, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.analytics.services import invalidate_leaderboard_cache
from apps.common.broadcaster import LeaderboardUpdate, PostCommitEvent
from apps.common.infra.logger import get_logger, logger_extra
from apps.events.models import Team
from apps.events.repo import SubmissionRepo

from .models import CRITERIA, Evaluation
from .repo import EvaluationRepo

logger = get_logger(__name__)

REASON_EVALUATION_UPDATED = "evaluation_updated"
REASON_EVALUATION_COMPLETED = "evaluation_completed"
REASON_SUBMISSION_SCORED = "submission_scored"


def round_two_decimals(value: float) -> float:
    """四舍五入保留两位小数，恰好在 .xx5 上时向上进位"""
    return math.floor(value * 100 + 0.5) / 100


def evaluation_contribution(evaluation: Evaluation) -> Optional[float]:
    """单条评审的贡献分；一项子评分都没有时返回 None"""
    present = [value for value in (getattr(evaluation, name) for name in CRITERIA) if value is not None]
    if not present:
        return None
    return fmean(present) * 10


def compute_team_score(evaluations: Iterable[Evaluation], reviewed_scores: Iterable[float]) -> Optional[float]:
    """
    纯计算：评审优先，作品得分兜底，都没有返回 None
    """
    contributions = [c for c in (evaluation_contribution(e) for e in evaluations) if c is not None]
    if contributions:
        return round_two_decimals(fmean(contributions))
    reviewed = list(reviewed_scores)
    if reviewed:
        return fmean(reviewed)
    return None


@dataclass
class RecomputeOutcome:
    """重算结果：score 为 None 表示没有可用数据、原分未动"""
    score: Optional[float]
    events: list[PostCommitEvent] = field(default_factory=list)


class ScoreRecalculator:
    """
    队伍得分的唯一写入口

    并发说明：两个评审同时触发重算时各自读取当时的全部评审并覆盖写入，结果以最后一次写入为准，
    不做自动补算
    """

    def __init__(
            self,
            evaluation_repo: EvaluationRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
    ):
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def recompute(self, event_id: int, team_id: int, *, reason: str = REASON_EVALUATION_UPDATED) -> RecomputeOutcome:
        evaluations = list(self.evaluation_repo.for_team(event_id, team_id))
        reviewed = self.submission_repo.reviewed_scores(event_id, team_id)
        score = compute_team_score(evaluations, reviewed)
        if score is not None:
            self._persist(event_id, team_id, score)
        else:
            logger.info(
                "队伍暂无评审与已评审作品，保持原分",
                extra=logger_extra({"event_id": event_id, "team_id": team_id, "reason": reason}),
            )
        return RecomputeOutcome(score=score, events=[LeaderboardUpdate(event_id=event_id, reason=reason)])

    def _persist(self, event_id: int, team_id: int, score: float) -> None:
        try:
            with transaction.atomic():
                Team.objects.filter(pk=team_id, event_id=event_id).update(score=score, updated_at=timezone.now())
        except DatabaseError:
            logger.error(
                "队伍得分写入失败，已忽略",
                extra=logger_extra({"event_id": event_id, "team_id": team_id, "score": score}),
                exc_info=True,
            )
            return
        invalidate_leaderboard_cache(event_id)
        logger.info(
            "队伍得分已重算",
            extra=logger_extra({"event_id": event_id, "team_id": team_id, "score": score}),
        )
