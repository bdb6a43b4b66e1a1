from __future__ import annotations

from django.urls import path

from .views import (
    JudgeProgressView,
    RoundActivateView,
    RoundCloseView,
    RoundDetailView,
    RoundExtendView,
    RoundJudgeReminderView,
    RoundListCreateView,
    RoundLocationReminderView,
    RoundVisibilityView,
)

app_name = "rounds"

urlpatterns = [
    path("", RoundListCreateView.as_view(), name="list"),
    path("<int:round_id>/", RoundDetailView.as_view(), name="detail"),
    path("<int:round_id>/activate/", RoundActivateView.as_view(), name="activate"),
    path("<int:round_id>/extend/", RoundExtendView.as_view(), name="extend"),
    path("<int:round_id>/close/", RoundCloseView.as_view(), name="close"),
    path("<int:round_id>/judge-progress/", JudgeProgressView.as_view(), name="judge-progress"),
    path("<int:round_id>/visibility/", RoundVisibilityView.as_view(), name="visibility"),
    path("<int:round_id>/remind-judge/<int:judge_id>/", RoundJudgeReminderView.as_view(), name="remind-judge"),
    path("<int:round_id>/remind-location/", RoundLocationReminderView.as_view(), name="remind-location"),
]
