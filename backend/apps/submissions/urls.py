from __future__ import annotations

from django.urls import path

from .views import EvaluationCreateView, ManualAssignView, SubmissionDetailView, SubmissionDisqualifyView

app_name = "submissions"

# 路由：作品详情、评分、指派与取消资格
urlpatterns = [
    path("<int:submission_id>/", SubmissionDetailView.as_view(), name="detail"),
    path("<int:submission_id>/evaluations/", EvaluationCreateView.as_view(), name="evaluate"),
    path("<int:submission_id>/assign/", ManualAssignView.as_view(), name="assign"),
    path("<int:submission_id>/disqualify/", SubmissionDisqualifyView.as_view(), name="disqualify"),
]
