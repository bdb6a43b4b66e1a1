"""
URL configuration for Config project.

业务接口统一挂在 /api/ 下；OpenAPI 文档由 drf_spectacular 提供
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView

from apps.common.health import HealthCheckView

# Admin 中文化：修改后台标题/页眉/站点名称，避免默认英文显示
admin.site.site_header = "教师技能竞赛 管理后台"
admin.site.site_title = "教师技能竞赛"
admin.site.index_title = "管理控制台"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', HealthCheckView.as_view()),
    path('api/rounds/', include('apps.rounds.urls')),
    path('api/leaderboards/', include('apps.leaderboards.urls')),
    path('api/submissions/', include('apps.submissions.urls')),
    path('api/tiebreaks/', include('apps.tiebreaks.urls')),
    path('api/notifications/', include('apps.notifications.urls')),
    # OpenAPI 文档：提供 schema JSON 及 UI，仅供内部/前端获取接口定义
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
