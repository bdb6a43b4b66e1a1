from __future__ import annotations

from django.urls import path

from .views import TieBreakDetailView, TieBreakListCreateView, TieBreakResolveView, TieBreakVoteView

app_name = "tiebreaks"

urlpatterns = [
    path("", TieBreakListCreateView.as_view(), name="list"),
    path("<int:tiebreak_id>/", TieBreakDetailView.as_view(), name="detail"),
    path("<int:tiebreak_id>/votes/", TieBreakVoteView.as_view(), name="vote"),
    path("<int:tiebreak_id>/resolve/", TieBreakResolveView.as_view(), name="resolve"),
]
