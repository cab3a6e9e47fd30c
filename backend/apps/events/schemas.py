# apps/events/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.validators import (
    forbid_dangerous_html,
    normalize_email,
    parse_positive_int,
    parse_score,
    validate_email,
)

from .models import Registration

SUBMISSION_SCORE_MIN = 0
SUBMISSION_SCORE_MAX = 100


# Schema 层：报名、作品打分、评委分配的入参校验


@dataclass
class RegistrationCreateSchema(BaseSchema[None]):
    """
    报名入参：
    - 团队报名必须填写队名，成员邮箱逐个校验
    - 邮箱统一转小写
    """
    auto_validate: ClassVar[bool] = True

    first_name: str = ""
    personal_email: str = ""
    registration_type: str = Registration.Type.INDIVIDUAL
    last_name: str = ""
    team_name: str = ""
    desired_skills: list = field(default_factory=list)
    track: str = ""
    members: list = field(default_factory=list)

    def validate(self) -> None:
        if self.registration_type not in Registration.Type.values:
            raise ValidationError(message="报名类型只能是 individual 或 team")
        self.first_name = (self.first_name or "").strip()
        self.last_name = (self.last_name or "").strip()
        if not self.first_name:
            raise ValidationError(message="姓名不能为空")
        self.personal_email = normalize_email(self.personal_email)
        validate_email(self.personal_email)
        self.team_name = (self.team_name or "").strip()
        forbid_dangerous_html(self.team_name, field_name="队伍名称")
        if self.registration_type == Registration.Type.TEAM and not self.team_name:
            raise ValidationError(message="团队报名必须填写队伍名称")
        if not isinstance(self.desired_skills, list):
            raise ValidationError(message="desired_skills 必须为数组")
        self.desired_skills = [str(s).strip() for s in self.desired_skills if str(s).strip()]
        self.track = (self.track or "").strip()
        if not isinstance(self.members, list):
            raise ValidationError(message="members 必须为数组")
        cleaned = []
        for member in self.members:
            if not isinstance(member, dict):
                raise ValidationError(message="成员信息格式不正确")
            email = normalize_email(member.get("email"))
            validate_email(email)
            cleaned.append(
                {
                    "first_name": (member.get("first_name") or "").strip(),
                    "last_name": (member.get("last_name") or "").strip(),
                    "email": email,
                }
            )
        if self.registration_type == Registration.Type.INDIVIDUAL and cleaned:
            raise ValidationError(message="个人报名不能携带成员")
        self.members = cleaned


@dataclass
class SubmissionScoreSchema(BaseSchema[None]):
    """作品打分：0-100"""
    auto_validate: ClassVar[bool] = True

    score: Any = None

    def validate(self) -> None:
        self.score = parse_score(
            self.score, field_name="score", minimum=SUBMISSION_SCORE_MIN, maximum=SUBMISSION_SCORE_MAX
        )


@dataclass
class JudgeAssignSchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"eventId": "event_id", "judgeId": "judge_id"}

    event_id: Any = None
    judge_id: Any = None

    def validate(self) -> None:
        self.event_id = parse_positive_int(self.event_id, field_name="event_id")
        self.judge_id = parse_positive_int(self.judge_id, field_name="judge_id")
