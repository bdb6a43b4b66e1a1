from django.apps import AppConfig


class LeaderboardsConfig(AppConfig):
    """
    排行榜模块应用配置：
    - 晋级配额、排行榜快照与晋级事务
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.leaderboards"
    label = "leaderboards"
    verbose_name = "Leaderboards"
