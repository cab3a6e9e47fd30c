from __future__ import annotations

import math
from datetime import timedelta
from typing import Any, Iterable, Optional

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Count, Q
from django.db.models.functions import ExtractDay, ExtractHour, ExtractWeekDay
from django.utils import timezone

from apps.common.base.base_service import BaseService
from apps.common.broadcaster import serialize_datetime
from apps.common.exceptions import AggregationDegradedError, PermissionDeniedError
from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.redis_keys import leaderboard_key, leaderboard_keys
from apps.events.models import Event, Registration, Submission, Team
from apps.events.repo import EventRepo

from .schemas import LEADERBOARD_TYPES, LeaderboardQuerySchema, RollupQuerySchema, SuggestionQuerySchema, TrendQuerySchema
from .scoping import resolve_event_scope

# 服务层：活动统计、仪表盘、趋势、排行榜与技能分析，全部按需从业务表实时聚合

logger = get_logger(__name__)


def round_one_decimal(value: float) -> float:
    """四舍五入保留一位小数（半数向上），只在最终输出时调用"""
    return math.floor(value * 10 + 0.5) / 10


def conversion_rate(submissions: int, registrations: int) -> float:
    """
    作品/报名 百分比；报名为 0 时恒为 0
    不设上限：作品数多于报名数是合法数据
    """
    if registrations > 0:
        return submissions / registrations * 100
    return 0.0


def _grouped_counts(model, event_ids: list[int], since) -> dict[int, dict[str, int]]:
    """单次分组查询：每个活动的总数与 since 之后的新增数"""
    rows = (
        model.objects.filter(event_id__in=event_ids)
        .values("event_id")
        .annotate(total=Count("id"), recent=Count("id", filter=Q(created_at__gte=since)))
        .order_by()
    )
    return {row["event_id"]: {"total": row["total"], "recent": row["recent"]} for row in rows}


def _sort_value(row: dict, sort_by: str) -> Any:
    if sort_by in ("start_date", "title"):
        value = row[sort_by]
        return value.lower() if isinstance(value, str) else value
    return row["metrics"][sort_by]


def sort_rollup(rows: list[dict], sort_by: str, order: str) -> list[dict]:
    """
    先按 ID 升序再按指标稳定排序：同值时顺序只由活动 ID 决定，与输入顺序无关
    """
    ordered = sorted(rows, key=lambda r: r["id"])
    return sorted(ordered, key=lambda r: _sort_value(r, sort_by), reverse=(order == "desc"))


class EventRollupService(BaseService[list[dict]]):
    """
    活动汇总：
    - 调用者角色决定活动范围，范围为空直接返回空列表
    - 报名、作品各一次分组查询，不按活动逐个查库
    """

    atomic_enabled = False

    def perform(self, user, query: RollupQuerySchema) -> list[dict]:
        scope = resolve_event_scope(user, status=query.status)
        events = list(scope.apply().values("id", "title", "status", "start_date", "end_date").order_by())
        if not events:
            return []
        return self.compute(events, query)

    def compute(self, events: list[dict], query: RollupQuerySchema) -> list[dict]:
        event_ids = [e["id"] for e in events]
        since = timezone.now() - timedelta(hours=24)
        registrations = _grouped_counts(Registration, event_ids, since)
        submissions = _grouped_counts(Submission, event_ids, since)
        empty = {"total": 0, "recent": 0}

        rows = []
        for event in events:
            reg = registrations.get(event["id"], empty)
            sub = submissions.get(event["id"], empty)
            rows.append(
                {
                    **event,
                    "metrics": {
                        "registrations": reg["total"],
                        "submissions": sub["total"],
                        "conversion": conversion_rate(sub["total"], reg["total"]),
                        "activity_24h": reg["recent"] + sub["recent"],
                    },
                }
            )
        rows = sort_rollup(rows, query.sort_by, query.order)
        if query.limit:
            rows = rows[: query.limit]
        for row in rows:
            row["metrics"]["conversion"] = round_one_decimal(row["metrics"]["conversion"])
        return rows


DASHBOARD_KEYS: tuple[str, ...] = (
    "active_events",
    "total_participants",
    "total_submissions",
    "success_rate",
    "engagement_rate",
    "teams_formed",
)


def _ensure_event_visible(user, event_id: int) -> Event:
    """指定活动时校验活动存在且在调用者范围内；越权属于授权错误，不做降级"""
    event = EventRepo().get_by_id(event_id)
    if not resolve_event_scope(user).apply().filter(pk=event.id).exists():
        raise PermissionDeniedError()
    return event


class DashboardService(BaseService[dict]):
    """
    仪表盘汇总：全局或单个活动
    - 存储读取失败时返回全零并标记 degraded，记 WARNING，不向调用方报错
    """

    atomic_enabled = False

    def perform(self, user, event_id: Optional[int] = None) -> dict:
        if event_id is not None:
            _ensure_event_visible(user, event_id)
        try:
            totals = self.compute(event_id)
        except AggregationDegradedError:
            logger.warning(
                "仪表盘统计降级，返回零值",
                extra=logger_extra({"event_id": event_id}),
                exc_info=True,
            )
            return {**{key: 0 for key in DASHBOARD_KEYS}, "degraded": True}
        return {**totals, "degraded": False}

    def compute(self, event_id: Optional[int]) -> dict:
        try:
            return self._compute(event_id)
        except DatabaseError as exc:
            raise AggregationDegradedError() from exc

    def _compute(self, event_id: Optional[int]) -> dict:
        now = timezone.now()
        events = Event.objects.all()
        registrations = Registration.objects.all()
        submissions = Submission.objects.all()
        if event_id is not None:
            events = events.filter(pk=event_id)
            registrations = registrations.filter(event_id=event_id)
            submissions = submissions.filter(event_id=event_id)

        active_events = events.filter(status=Event.Status.ONGOING, start_date__lte=now, end_date__gte=now).count()
        reg_stats = registrations.aggregate(
            total=Count("id"),
            recent=Count("id", filter=Q(created_at__gte=now - timedelta(days=7))),
            teams=Count(
                "id",
                filter=Q(registration_type=Registration.Type.TEAM) & ~Q(team_name=""),
            ),
        )
        total_participants = reg_stats["total"]
        total_submissions = submissions.count()

        if event_id is not None:
            success_rate = conversion_rate(total_submissions, total_participants)
        else:
            # 全局：非草稿活动中至少有一份作品的占比
            published = events.exclude(status=Event.Status.DRAFT)
            published_total = published.count()
            with_submissions = published.filter(submissions__isnull=False).distinct().count()
            success_rate = conversion_rate(with_submissions, published_total)

        engagement_rate = conversion_rate(reg_stats["recent"], total_participants)
        return {
            "active_events": active_events,
            "total_participants": total_participants,
            "total_submissions": total_submissions,
            "success_rate": round_one_decimal(success_rate),
            "engagement_rate": round_one_decimal(engagement_rate),
            "teams_formed": reg_stats["teams"],
        }


# timeframe -> (时间窗口, 分桶函数)
TREND_BUCKETS = {
    "24h": (timedelta(hours=24), ExtractHour),
    "7d": (timedelta(days=7), ExtractWeekDay),
    "30d": (timedelta(days=30), ExtractDay),
}


class TrendService(BaseService[dict]):
    """
    报名趋势：
    - 24h 按小时（0-23）、7d 按星期（1=周日 ... 7=周六）、30d 按日期（1-31）
    - 只返回有数据的桶，按桶号升序
    """

    atomic_enabled = False

    def perform(self, user, query: TrendQuerySchema) -> dict:
        if query.event_id is not None:
            _ensure_event_visible(user, query.event_id)
        try:
            buckets = self.compute(query.timeframe, query.event_id)
        except AggregationDegradedError:
            logger.warning(
                "趋势统计降级，返回零值",
                extra=logger_extra({"event_id": query.event_id, "timeframe": query.timeframe}),
                exc_info=True,
            )
            return {"timeframe": query.timeframe, "buckets": [], "total": 0, "degraded": True}
        return {
            "timeframe": query.timeframe,
            "buckets": buckets,
            "total": sum(b["count"] for b in buckets),
            "degraded": False,
        }

    def compute(self, timeframe: str, event_id: Optional[int]) -> list[dict]:
        window, extractor = TREND_BUCKETS[timeframe]
        qs = Registration.objects.filter(created_at__gte=timezone.now() - window)
        if event_id is not None:
            qs = qs.filter(event_id=event_id)
        try:
            rows = list(
                qs.annotate(bucket=extractor("created_at"))
                .values("bucket")
                .annotate(count=Count("id"))
                .order_by("bucket")
            )
        except DatabaseError as exc:
            raise AggregationDegradedError() from exc
        return [{"bucket": row["bucket"], "count": row["count"]} for row in rows]


def _leaderboard_cache_ttl() -> int:
    return int(getattr(settings, "LEADERBOARD_CACHE_TTL", 0) or 0)


def invalidate_leaderboard_cache(event_id: int) -> None:
    """得分重算后清除该活动的排行榜缓存；未开启缓存时不访问 Redis"""
    if _leaderboard_cache_ttl() <= 0:
        return
    redis_client.delete(*leaderboard_keys(event_id, LEADERBOARD_TYPES))


class LeaderboardService(BaseService[list[dict]]):
    """
    排行榜：按 score 降序、创建时间升序（同分先创建者在前），附 1 起始的名次
    - LEADERBOARD_CACHE_TTL > 0 时缓存完整榜单，limit 在读取后截断
    """

    atomic_enabled = False

    def __init__(self, event_repo: EventRepo | None = None):
        self.event_repo = event_repo or EventRepo()

    def perform(self, query: LeaderboardQuerySchema) -> list[dict]:
        event = self.event_repo.get_by_id(query.event_id)
        ttl = _leaderboard_cache_ttl()
        cache_key = leaderboard_key(event.id, query.type)
        board = redis_client.get_json(cache_key) if ttl > 0 else None
        if not isinstance(board, list):
            board = self.build(event.id, query.type)
            if ttl > 0:
                redis_client.set_json(cache_key, board, ex=ttl)
        if query.limit:
            board = board[: query.limit]
        return board

    def build(self, event_id: int, board_type: str) -> list[dict]:
        if board_type == "submission":
            rows = (
                Submission.objects.filter(event_id=event_id)
                .select_related("team")
                .order_by("-score", "created_at", "id")
            )
            return [
                {
                    "rank": index,
                    "id": sub.id,
                    "name": sub.title,
                    "team_id": sub.team_id,
                    "team_name": sub.team.name,
                    "score": sub.score,
                    "created_at": serialize_datetime(sub.created_at),
                }
                for index, sub in enumerate(rows, start=1)
            ]
        teams = Team.objects.filter(event_id=event_id).order_by("-score", "created_at", "id")
        return [
            {
                "rank": index,
                "id": team.id,
                "name": team.name,
                "team_id": team.id,
                "team_name": team.name,
                "score": team.score,
                "created_at": serialize_datetime(team.created_at),
            }
            for index, team in enumerate(teams, start=1)
        ]


# 技能关键字 -> 分类；按顺序匹配，命中即止
SKILL_CATEGORIES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("frontend", "Frontend", ("react", "next", "frontend", "html", "css", "javascript", "typescript", "vue", "angular")),
    (
        "backend",
        "Backend",
        ("backend", "node", "express", "python", "django", "flask", "java", "spring", "postgres", "mongodb", "sql", "api"),
    ),
    ("design", "Design", ("design", "ui", "ux", "figma", "prototyping", "wireframe")),
    ("mobile", "Mobile", ("mobile", "react native", "ios", "android", "flutter", "kotlin", "swift")),
)


def categorize_skill(raw: Any) -> Optional[str]:
    text = str(raw or "").strip().lower()
    if not text:
        return None
    for key, _name, keywords in SKILL_CATEGORIES:
        if any(keyword in text for keyword in keywords):
            return key
    return None


def _skill_categories(skills: Iterable[Any]) -> set[str]:
    return {cat for cat in (categorize_skill(s) for s in skills) if cat}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


class SkillDistributionService(BaseService[list[dict]]):
    """
    技能分布：每条报名按期望技能与赛道归入分类，同一报名在同一分类只计一次
    """

    atomic_enabled = False

    def perform(self) -> list[dict]:
        counts = {key: 0 for key, _name, _kw in SKILL_CATEGORIES}
        for skills, track in Registration.objects.values_list("desired_skills", "track"):
            categories = _skill_categories(_as_list(skills))
            track_category = categorize_skill(track)
            if track_category:
                categories.add(track_category)
            for category in categories:
                counts[category] += 1
        return [{"key": key, "name": name, "count": counts[key]} for key, name, _kw in SKILL_CATEGORIES]


def _full_name(first: str, last: str) -> str:
    return " ".join(part for part in (first, last) if part).strip()


class TeamSuggestionService(BaseService[list[dict]]):
    """
    组队推荐：
    - 以 (活动, 队名) 聚合团队报名，成员按邮箱去重，没有成员条目时以报名人本人计入
    - 匹配度 = 80 + 4 × 技能分类数（最多 4）+ 2 × 人数（最多 5），上限 100
    """

    atomic_enabled = False

    def perform(self, query: SuggestionQuerySchema) -> list[dict]:
        qs = Registration.objects.exclude(team_name="").select_related("event").prefetch_related("members")
        if query.event_id is not None:
            qs = qs.filter(event_id=query.event_id)

        groups: dict[tuple[int, str], list[Registration]] = {}
        for registration in qs.order_by("created_at", "id"):
            groups.setdefault((registration.event_id, registration.team_name), []).append(registration)

        suggestions = [self._suggest(event_id, team_name, regs) for (event_id, team_name), regs in groups.items()]
        suggestions.sort(key=lambda s: -s["compatibility"])
        return suggestions[: query.limit]

    def _suggest(self, event_id: int, team_name: str, registrations: list[Registration]) -> dict:
        members: list[dict] = []
        seen: set[str] = set()
        categories: set[str] = set()
        for reg in registrations:
            skills = _as_list(reg.desired_skills)
            categories |= _skill_categories(skills)
            entries = [(m.first_name, m.last_name, m.email) for m in reg.members.all()] or [
                (reg.first_name, reg.last_name, reg.personal_email)
            ]
            for first, last, email in entries:
                identity = (email or "").lower() or f"{first}-{last}"
                if identity in seen:
                    continue
                seen.add(identity)
                members.append(
                    {
                        "name": _full_name(first, last) or email or "Member",
                        "role": reg.track or "Member",
                        "skills": skills[:3],
                    }
                )

        diversity = min(4, len(categories))
        size_factor = min(5, len(members))
        compatibility = max(0, min(100, 80 + diversity * 4 + size_factor * 2))
        strengths = []
        if diversity >= 3:
            strengths.append("Balanced skill set")
        if size_factor >= 3:
            strengths.append("High collaboration score")
        if diversity >= 2 and size_factor >= 2:
            strengths.append("Complementary experience levels")

        event_title = registrations[0].event.title
        return {
            "id": f"{event_id}::{team_name}",
            "name": team_name,
            "event_id": event_id,
            "event_title": event_title,
            "leader_name": members[0]["name"] if members else None,
            "compatibility": compatibility,
            "members": members[:8],
            "strengths": strengths or ["Strong potential composition"],
        }
