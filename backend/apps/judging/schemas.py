# apps/judging/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.validators import forbid_dangerous_html, parse_positive_int, parse_score

from .models import CRITERIA

CRITERION_MIN = 0
CRITERION_MAX = 10


@dataclass
class EvaluationUpsertSchema(BaseSchema[None]):
    """
    评审提交入参：
    - scores 只取四项子评分，其余键忽略；显式传 null 表示该项不打分
    - 每项必须在 0-10 之间
    """
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"eventId": "event_id", "teamId": "team_id"}

    event_id: Any = None
    team_id: Any = None
    scores: dict = field(default_factory=dict)
    comments: str = ""

    def validate(self) -> None:
        self.event_id = parse_positive_int(self.event_id, field_name="event_id")
        self.team_id = parse_positive_int(self.team_id, field_name="team_id")
        if self.scores is None:
            self.scores = {}
        if not isinstance(self.scores, dict):
            raise ValidationError(message="scores 必须为对象")
        cleaned: dict[str, float | None] = {}
        for name in CRITERIA:
            if name not in self.scores or self.scores[name] is None:
                cleaned[name] = None
                continue
            cleaned[name] = parse_score(
                self.scores[name], field_name=name, minimum=CRITERION_MIN, maximum=CRITERION_MAX
            )
        self.scores = cleaned
        self.comments = (self.comments or "").strip()
        forbid_dangerous_html(self.comments, field_name="评语")
