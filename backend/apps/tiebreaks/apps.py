from django.apps import AppConfig


class TiebreaksConfig(AppConfig):
    """
    平局裁决模块应用配置
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.tiebreaks"
    label = "tiebreaks"
    verbose_name = "Tie-Breaks"
