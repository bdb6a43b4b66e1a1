from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """
    账户模块应用配置：
    - 提供自定义 User 模型（AUTH_USER_MODEL = "accounts.User"）
    """

    # 默认主键类型：使用 BigAutoField，避免主键溢出
    default_auto_field = "django.db.models.BigAutoField"
    # 应用全路径：与 Django INSTALLED_APPS 保持一致
    name = "apps.accounts"
    # 应用标签：用于 Django 内部标识
    label = "accounts"
    # 应用可读名称：在 Django 管理后台等处显示
    verbose_name = "Accounts"
