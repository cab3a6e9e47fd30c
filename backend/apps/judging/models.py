from __future__ import annotations

from django.conf import settings
from django.db import models

from apps.events.models import Event, Team

User = settings.AUTH_USER_MODEL

# 四项子评分，均为 0-10，可为空（未打的项不计入平均）
CRITERIA: tuple[str, ...] = ("innovation", "impact", "feasibility", "presentation")


class Evaluation(models.Model):
    """
    评审记录：一位评委对一支队伍在一个活动中的打分
    - (event, team, judge) 唯一，重复提交走更新
    - 任何写入都会触发队伍得分重算
    """

    class Status(models.TextChoices):
        PENDING = "pending", "待确认"
        COMPLETE = "complete", "已完成"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="evaluations", verbose_name="活动")
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="evaluations", verbose_name="队伍")
    judge = models.ForeignKey(User, on_delete=models.CASCADE, related_name="evaluations", verbose_name="评委")
    innovation = models.FloatField("创新性", null=True, blank=True)
    impact = models.FloatField("影响力", null=True, blank=True)
    feasibility = models.FloatField("可行性", null=True, blank=True)
    presentation = models.FloatField("展示", null=True, blank=True)
    comments = models.TextField("评语", blank=True)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["team_id", "judge_id", "id"]
        verbose_name = "评审记录"
        verbose_name_plural = "评审记录"
        constraints = [
            models.UniqueConstraint(fields=["event", "team", "judge"], name="uniq_evaluation_per_judge_team"),
        ]

    def __str__(self) -> str:
        return f"{self.judge_id}->{self.team_id}@{self.event_id}"

    @property
    def scores(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in CRITERIA}
