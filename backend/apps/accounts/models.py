"""
账户模型：活动平台的认证主体

- 登录/注册由外部认证服务负责，这里只保存统计与权限判定需要的字段
- role 决定可见范围：主办方只看自己的活动，评委只看被分配的活动，参赛者只看自己报名的活动
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class HackathonUserManager(UserManager):
    """
    自定义用户管理器：创建时统一把邮箱转为小写，保证按邮箱匹配报名记录时结果稳定
    """

    def create_user(self, username, email=None, password=None, **extra_fields):
        return super().create_user(username, email=(email or "").strip().lower(), password=password, **extra_fields)

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.Role.ORGANIZER)
        return super().create_superuser(username, email=(email or "").strip().lower(), password=password, **extra_fields)


class User(AbstractUser):
    """
    平台用户：主办方 / 参赛者 / 评委
    """

    class Role(models.TextChoices):
        ORGANIZER = "organizer", "主办方"
        PARTICIPANT = "participant", "参赛者"
        JUDGE = "judge", "评委"

    email = models.EmailField("邮箱", unique=True)
    name = models.CharField("显示名称", max_length=120, blank=True)
    role = models.CharField("角色", max_length=20, choices=Role.choices, default=Role.PARTICIPANT, db_index=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    objects = HackathonUserManager()

    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["email"]

    class Meta(AbstractUser.Meta):  # type: ignore[misc]
        ordering = ["-date_joined"]
        verbose_name = "用户"
        verbose_name_plural = "用户"

    def save(self, *args, **kwargs):
        # 邮箱统一小写存储；展示名缺省回退用户名
        self.email = (self.email or "").strip().lower()
        if not self.name:
            self.name = self.username
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.name or self.username
