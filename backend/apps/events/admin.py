from __future__ import annotations

from django.contrib import admin

from apps.common.infra.logger import get_logger, logger_extra

from .models import Event, JudgeAssignment, Registration, RegistrationMember, Submission, Team

# 后台注册：仅负责 Django Admin 展示配置，不包含业务逻辑

logger = get_logger(__name__)


class RegistrationMemberInline(admin.TabularInline):
    model = RegistrationMember
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "start_date", "end_date", "organizer")
    list_filter = ("status",)
    search_fields = ("title", "organizer__username", "organizer__email")
    raw_id_fields = ("organizer",)


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ("id", "event", "registration_type", "personal_email", "team_name", "created_at")
    list_filter = ("registration_type", "event")
    search_fields = ("personal_email", "team_name", "first_name", "last_name")
    inlines = [RegistrationMemberInline]


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "event", "score", "created_at")
    list_filter = ("event",)
    search_fields = ("name",)
    readonly_fields = ("score",)
    filter_horizontal = ("members",)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "team", "event", "score", "status", "created_at")
    list_filter = ("status", "event")
    search_fields = ("title", "team__name")


@admin.register(JudgeAssignment)
class JudgeAssignmentAdmin(admin.ModelAdmin):
    list_display = ("id", "judge", "event", "created_by", "created_at")
    list_filter = ("event",)
    raw_id_fields = ("judge", "event", "created_by")

    def save_model(self, request, obj, form, change):
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
        logger.info(
            "Admin评委分配",
            extra=logger_extra(
                {"admin": getattr(request.user, "username", None), "judge_id": obj.judge_id, "event_id": obj.event_id}
            ),
        )
