from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

# 模型文件：活动、报名、队伍、作品、评委分配的数据结构，不承载业务流程
# 活动的创建/编辑、作品提交由其他服务负责，本服务只读取并维护统计相关字段

User = settings.AUTH_USER_MODEL


class Event(models.Model):
    """
    活动模型：
    - status 由活动管理端维护，统计侧只读
    - organizer 决定主办方可见范围
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "草稿"
        UPCOMING = "upcoming", "即将开始"
        ONGOING = "ongoing", "进行中"
        COMPLETED = "completed", "已结束"

    title = models.CharField("活动名称", max_length=200)
    description = models.TextField("活动描述", blank=True)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    start_date = models.DateTimeField("开始时间")
    end_date = models.DateTimeField("结束时间")
    organizer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="organized_events", verbose_name="主办方")
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-start_date", "id"]
        verbose_name = "活动"
        verbose_name_plural = "活动"

    def __str__(self) -> str:
        return self.title


class Registration(models.Model):
    """
    报名记录：创建后不再修改
    - 个人报名只有报名人信息；团队报名附带队名与成员（RegistrationMember）
    - 邮箱统一小写存储，参赛者可见范围按邮箱匹配
    """

    class Type(models.TextChoices):
        INDIVIDUAL = "individual", "个人"
        TEAM = "team", "团队"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations", verbose_name="活动")
    registration_type = models.CharField("报名类型", max_length=20, choices=Type.choices, default=Type.INDIVIDUAL)
    first_name = models.CharField("名", max_length=100)
    last_name = models.CharField("姓", max_length=100, blank=True)
    personal_email = models.EmailField("报名邮箱", db_index=True)
    team_name = models.CharField("队伍名称", max_length=120, blank=True)
    desired_skills = models.JSONField("期望技能", default=list, blank=True)
    track = models.CharField("赛道", max_length=120, blank=True)
    created_at = models.DateTimeField("报名时间", default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at", "id"]
        verbose_name = "报名"
        verbose_name_plural = "报名"
        indexes = [models.Index(fields=["event", "created_at"], name="registration_event_created")]

    def __str__(self) -> str:
        return f"{self.event_id}:{self.personal_email}"

    def save(self, *args, **kwargs):
        self.personal_email = (self.personal_email or "").strip().lower()
        self.team_name = (self.team_name or "").strip()
        super().save(*args, **kwargs)

    @property
    def is_team(self) -> bool:
        return self.registration_type == self.Type.TEAM


class RegistrationMember(models.Model):
    """团队报名中的成员条目"""

    registration = models.ForeignKey(Registration, on_delete=models.CASCADE, related_name="members", verbose_name="报名")
    first_name = models.CharField("名", max_length=100)
    last_name = models.CharField("姓", max_length=100, blank=True)
    email = models.EmailField("邮箱", db_index=True)

    class Meta:
        ordering = ["id"]
        verbose_name = "报名成员"
        verbose_name_plural = "报名成员"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)


class Team(models.Model):
    """
    队伍：score 是本服务唯一会写入的派生字段，每次重算整体覆盖
    """

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="teams", verbose_name="活动")
    name = models.CharField("队伍名称", max_length=120)
    members = models.ManyToManyField(User, related_name="teams", blank=True, verbose_name="成员")
    score = models.FloatField("得分", default=0)
    created_at = models.DateTimeField("创建时间", default=timezone.now)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-score", "created_at", "id"]
        verbose_name = "队伍"
        verbose_name_plural = "队伍"
        constraints = [models.UniqueConstraint(fields=["event", "name"], name="uniq_team_name_per_event")]

    def __str__(self) -> str:
        return self.name


class Submission(models.Model):
    """
    作品：score 由主办方或评委打分（0-100），打分后状态置为 reviewed
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "草稿"
        SUBMITTED = "submitted", "已提交"
        REVIEWED = "reviewed", "已评审"

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="submissions", verbose_name="队伍")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="submissions", verbose_name="活动")
    title = models.CharField("作品标题", max_length=200)
    description = models.TextField("作品描述", blank=True)
    repo_url = models.URLField("代码仓库", blank=True)
    score = models.FloatField("得分", default=0)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.SUBMITTED, db_index=True)
    created_at = models.DateTimeField("提交时间", default=timezone.now, db_index=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]
        verbose_name = "作品"
        verbose_name_plural = "作品"
        indexes = [models.Index(fields=["event", "created_at"], name="submission_event_created")]

    def __str__(self) -> str:
        return self.title


class JudgeAssignment(models.Model):
    """评委分配：评委访问活动评审数据的唯一依据"""

    judge = models.ForeignKey(User, on_delete=models.CASCADE, related_name="judge_assignments", verbose_name="评委")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="judge_assignments", verbose_name="活动")
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_judge_assignments",
        verbose_name="分配人",
    )
    created_at = models.DateTimeField("分配时间", auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "id"]
        verbose_name = "评委分配"
        verbose_name_plural = "评委分配"
        constraints = [models.UniqueConstraint(fields=["judge", "event"], name="uniq_judge_per_event")]

    def __str__(self) -> str:
        return f"{self.judge_id}@{self.event_id}"
