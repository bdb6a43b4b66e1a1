from __future__ import annotations

from django.urls import path

from .views import AdvanceView, LeaderboardView, QuotaListCreateView

app_name = "leaderboards"

urlpatterns = [
    path("", LeaderboardView.as_view(), name="detail"),
    path("quotas/", QuotaListCreateView.as_view(), name="quotas"),
    path("advance/", AdvanceView.as_view(), name="advance"),
]
