from __future__ import annotations

from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "type", "event", "created_by", "created_at")
    list_filter = ("type", "event")
    search_fields = ("title", "message")
    raw_id_fields = ("event", "team", "created_by")
    filter_horizontal = ("recipients", "read_by")
