from django.apps import AppConfig


class SubmissionsConfig(AppConfig):
    """
    作品模块应用配置：
    - 参赛作品、评委评分与一对一评审指派
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.submissions"
    label = "submissions"
    verbose_name = "Submissions"
