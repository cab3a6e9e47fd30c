from __future__ import annotations

from django.contrib import admin

from .models import Evaluation


@admin.register(Evaluation)
class EvaluationAdmin(admin.ModelAdmin):
    """评审记录只读浏览：得分由接口写入并触发重算，后台直接修改不会刷新队伍得分"""

    list_display = ("id", "event", "team", "judge", "innovation", "impact", "feasibility", "presentation", "status")
    list_filter = ("status", "event")
    search_fields = ("team__name", "judge__username", "judge__email")
    readonly_fields = ("innovation", "impact", "feasibility", "presentation", "created_at", "updated_at")
    raw_id_fields = ("event", "team", "judge")
