"""
后台账户管理：在默认 UserAdmin 基础上展示角色与显示名称
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "email", "name", "role", "is_active", "date_joined")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("username", "email", "name")
    fieldsets = DjangoUserAdmin.fieldsets + (("平台资料", {"fields": ("name", "role")}),)
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (("平台资料", {"fields": ("email", "name", "role")}),)
