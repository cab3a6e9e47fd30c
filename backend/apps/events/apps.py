from django.apps import AppConfig


class EventsConfig(AppConfig):
    """
    Events 应用配置：活动、报名、队伍、作品与评委分配
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.events'
    label = 'events'
    verbose_name = "Events"
