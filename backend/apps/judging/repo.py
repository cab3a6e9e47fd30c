from __future__ import annotations

from django.db.models import Q, QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import CRITERIA, Evaluation


class EvaluationRepo(BaseRepo[Evaluation]):
    """评审记录仓储"""

    model = Evaluation
    not_found_message = "评审记录不存在"

    def get_queryset(self) -> QuerySet[Evaluation]:
        return super().get_queryset().select_related("event", "team", "judge")

    def upsert(self, *, event, team, judge, scores: dict, comments: str) -> tuple[Evaluation, bool]:
        """
        按 (活动, 队伍, 评委) 写入评审；四项子评分整体覆盖，状态回到 pending
        """
        defaults = {name: scores.get(name) for name in CRITERIA}
        defaults.update({"comments": comments, "status": Evaluation.Status.PENDING})
        return self.model.objects.update_or_create(event=event, team=team, judge=judge, defaults=defaults)

    def for_team(self, event_id: int, team_id: int) -> QuerySet[Evaluation]:
        return self.model.objects.filter(event_id=event_id, team_id=team_id)

    def scoped(self, condition: Q) -> QuerySet[Evaluation]:
        return self.get_queryset().filter(condition).order_by("team__name", "judge_id", "id")
