from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """
    通知模块应用配置：
    - 持久化站内通知，并通过 Channels 推送给在线用户
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notifications"
    label = "notifications"
    verbose_name = "Notifications"
