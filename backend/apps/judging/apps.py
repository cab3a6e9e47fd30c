from django.apps import AppConfig


class JudgingConfig(AppConfig):
    """
    Judging 应用配置：评委评审记录与队伍得分重算
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.judging'
    label = 'judging'
    verbose_name = "Judging"
