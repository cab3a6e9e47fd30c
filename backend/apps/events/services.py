from __future__ import annotations

from apps.accounts.repo import UserRepo
from apps.analytics.scoping import ensure_can_score, ensure_event_owner
from apps.common.base.base_service import BaseService
from apps.common.broadcaster import MutationResult
from apps.common.exceptions import EventNotOpenError, ValidationError
from apps.common.infra.logger import get_logger, logger_extra
from apps.judging.scoring import REASON_SUBMISSION_SCORED, ScoreRecalculator

from .models import Event, JudgeAssignment, Registration, Submission
from .repo import EventRepo, JudgeAssignmentRepo, RegistrationRepo, SubmissionRepo, TeamRepo
from .schemas import JudgeAssignSchema, RegistrationCreateSchema, SubmissionScoreSchema

# 服务层：报名、作品打分、评委分配

logger = get_logger(__name__)


def serialize_event(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "status": event.status,
        "start_date": event.start_date,
        "end_date": event.end_date,
        "organizer_id": event.organizer_id,
    }


def serialize_registration(registration: Registration) -> dict:
    return {
        "id": registration.id,
        "event_id": registration.event_id,
        "registration_type": registration.registration_type,
        "first_name": registration.first_name,
        "last_name": registration.last_name,
        "personal_email": registration.personal_email,
        "team_name": registration.team_name,
        "desired_skills": registration.desired_skills,
        "track": registration.track,
        "members": [
            {"first_name": m.first_name, "last_name": m.last_name, "email": m.email}
            for m in registration.members.all()
        ],
        "created_at": registration.created_at,
    }


def serialize_submission(submission: Submission) -> dict:
    return {
        "id": submission.id,
        "event_id": submission.event_id,
        "team_id": submission.team_id,
        "title": submission.title,
        "score": submission.score,
        "status": submission.status,
        "updated_at": submission.updated_at,
    }


class RegistrationCreateService(BaseService[Registration]):
    """
    报名：
    - 草稿活动不接受报名
    - 团队报名按 (活动, 队名) 建立或复用队伍，并把邮箱已注册的报名人/成员加入队伍
    """

    def __init__(
            self,
            event_repo: EventRepo | None = None,
            registration_repo: RegistrationRepo | None = None,
            team_repo: TeamRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.event_repo = event_repo or EventRepo()
        self.registration_repo = registration_repo or RegistrationRepo()
        self.team_repo = team_repo or TeamRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, event_id: int, schema: RegistrationCreateSchema) -> Registration:
        event = self.event_repo.get_by_id(event_id)
        if event.status == Event.Status.DRAFT:
            raise EventNotOpenError()
        registration = self.registration_repo.create_with_members(
            {
                "event": event,
                "registration_type": schema.registration_type,
                "first_name": schema.first_name,
                "last_name": schema.last_name,
                "personal_email": schema.personal_email,
                "team_name": schema.team_name,
                "desired_skills": schema.desired_skills,
                "track": schema.track,
            },
            schema.members,
        )
        if registration.is_team:
            team, created = self.team_repo.upsert_by_name(event, registration.team_name)
            emails = [schema.personal_email, *(m["email"] for m in schema.members)]
            account_ids = self.user_repo.ids_by_emails(emails)
            if account_ids:
                team.members.add(*account_ids)
            logger.info(
                "团队报名已关联队伍",
                extra=logger_extra(
                    {"event_id": event.id, "team_id": team.id, "team_created": created, "linked": len(account_ids)}
                ),
            )
        logger.info(
            "报名成功",
            extra=logger_extra({"event_id": event.id, "registration_id": registration.id}),
        )
        return registration


class SubmissionScoreService(BaseService[MutationResult[Submission]]):
    """
    作品打分：活动主办方或已分配评委；打分后作品置为 reviewed，并重算所属队伍得分
    """

    def __init__(
            self,
            submission_repo: SubmissionRepo | None = None,
            recalculator: ScoreRecalculator | None = None,
    ):
        self.submission_repo = submission_repo or SubmissionRepo()
        self.recalculator = recalculator or ScoreRecalculator()

    def perform(self, user, submission_id: int, schema: SubmissionScoreSchema) -> MutationResult[Submission]:
        submission = self.submission_repo.get_by_id(submission_id)
        ensure_can_score(user, submission.event)
        submission.score = schema.score
        submission.status = Submission.Status.REVIEWED
        submission.save(update_fields=["score", "status", "updated_at"])
        outcome = self.recalculator.recompute(
            submission.event_id, submission.team_id, reason=REASON_SUBMISSION_SCORED
        )
        logger.info(
            "作品已打分",
            extra=logger_extra(
                {"submission_id": submission.id, "score": submission.score, "team_score": outcome.score}
            ),
        )
        return MutationResult(instance=submission, events=outcome.events)


class JudgeAssignService(BaseService[tuple[JudgeAssignment, bool]]):
    """
    分配评委：仅活动主办方；重复分配幂等
    """

    def __init__(
            self,
            event_repo: EventRepo | None = None,
            assignment_repo: JudgeAssignmentRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.event_repo = event_repo or EventRepo()
        self.assignment_repo = assignment_repo or JudgeAssignmentRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, user, schema: JudgeAssignSchema) -> tuple[JudgeAssignment, bool]:
        event = self.event_repo.get_by_id(schema.event_id)
        ensure_event_owner(user, event)
        judge = self.user_repo.get_active(schema.judge_id)
        if judge.role != judge.Role.JUDGE:
            raise ValidationError(message="该用户不是评委")
        assignment, created = self.assignment_repo.assign(judge=judge, event=event, created_by=user)
        logger.info(
            "评委分配",
            extra=logger_extra({"event_id": event.id, "judge_id": judge.id, "created": created}),
        )
        return assignment, created
