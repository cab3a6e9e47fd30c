from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """账户：自定义 User 模型，role 字段决定统计可见范围"""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounts"
    label = "accounts"
    verbose_name = "账户与角色"
