from django.apps import AppConfig


class RoundsConfig(AppConfig):
    """
    轮次模块应用配置：
    - 轮次生命周期、评委完成门禁与调度
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.rounds"
    label = "rounds"
    verbose_name = "Rounds"
