from __future__ import annotations

from typing import Iterable

from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo
from apps.common.exceptions import NotFoundError, TeamNotInEventError

from .models import Event, JudgeAssignment, Registration, RegistrationMember, Submission, Team


# 仓储层：封装活动、报名、队伍、作品、评委分配的 ORM 访问


class EventRepo(BaseRepo[Event]):
    """活动仓储"""

    model = Event
    not_found_message = "活动不存在"


class RegistrationRepo(BaseRepo[Registration]):
    """报名仓储：报名与成员一起写入"""

    model = Registration

    def get_queryset(self) -> QuerySet[Registration]:
        return super().get_queryset().prefetch_related("members")

    def create_with_members(self, data: dict, members: Iterable[dict]) -> Registration:
        registration = self.create(data)
        RegistrationMember.objects.bulk_create(
            [
                RegistrationMember(
                    registration=registration,
                    first_name=m.get("first_name", ""),
                    last_name=m.get("last_name", ""),
                    email=(m.get("email") or "").strip().lower(),
                )
                for m in members
            ]
        )
        return registration

    def emails_for_event(self, event_id: int) -> set[str]:
        """活动下所有报名人与成员邮箱（小写）"""
        personal = self.filter(event_id=event_id).values_list("personal_email", flat=True)
        member = RegistrationMember.objects.filter(registration__event_id=event_id).values_list("email", flat=True)
        return {e.strip().lower() for e in [*personal, *member] if e}


class TeamRepo(BaseRepo[Team]):
    """队伍仓储"""

    model = Team

    def get_in_event(self, team_id: int, event_id: int) -> Team:
        """
        获取属于指定活动的队伍
        - 队伍不存在：404
        - 队伍存在但属于其他活动：TeamNotInEventError
        """
        team = self.get_or_none(pk=team_id)
        if team is None:
            raise NotFoundError(message="队伍不存在")
        if team.event_id != event_id:
            raise TeamNotInEventError()
        return team

    def upsert_by_name(self, event: Event, name: str) -> tuple[Team, bool]:
        """按 (活动, 队名) 获取或创建队伍"""
        return self.model.objects.get_or_create(event=event, name=name)

    def member_ids_for_event(self, event_id: int, team_ids: Iterable[int] | None = None) -> set[int]:
        """活动下队伍成员的用户 ID，可按队伍进一步收窄"""
        qs = self.filter(event_id=event_id)
        if team_ids:
            qs = qs.filter(pk__in=list(team_ids))
        return {uid for uid in qs.values_list("members__id", flat=True) if uid is not None}


class SubmissionRepo(BaseRepo[Submission]):
    """作品仓储"""

    model = Submission
    not_found_message = "作品不存在"

    def get_queryset(self) -> QuerySet[Submission]:
        return super().get_queryset().select_related("team", "event")

    def reviewed_scores(self, event_id: int, team_id: int) -> list[float]:
        return list(
            self.filter(event_id=event_id, team_id=team_id, status=Submission.Status.REVIEWED).values_list(
                "score", flat=True
            )
        )

    def links_by_team(self, event_id: int) -> dict[int, list[str]]:
        """活动下每支队伍的作品仓库链接，用于导出"""
        links: dict[int, list[str]] = {}
        rows = self.filter(event_id=event_id).exclude(repo_url="").order_by("created_at", "id")
        for team_id, url in rows.values_list("team_id", "repo_url"):
            links.setdefault(team_id, []).append(url)
        return links


class JudgeAssignmentRepo(BaseRepo[JudgeAssignment]):
    """评委分配仓储"""

    model = JudgeAssignment

    def assign(self, *, judge, event: Event, created_by) -> tuple[JudgeAssignment, bool]:
        """重复分配直接返回已有记录"""
        return self.model.objects.get_or_create(judge=judge, event=event, defaults={"created_by": created_by})

    def events_for_judge(self, judge_id: int) -> QuerySet[Event]:
        return Event.objects.filter(judge_assignments__judge_id=judge_id).order_by("-start_date", "id")
