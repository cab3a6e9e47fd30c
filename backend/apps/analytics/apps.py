from django.apps import AppConfig


class AnalyticsConfig(AppConfig):
    """
    Analytics 应用配置：按角色划定可见范围，按需计算活动统计与排行榜
    - 不定义模型，所有指标都从活动/报名/作品/队伍实时聚合
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.analytics'
    label = 'analytics'
    verbose_name = "Analytics"
