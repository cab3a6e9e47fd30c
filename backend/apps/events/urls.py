from __future__ import annotations

from django.urls import path

from .views import JudgeAssignView, JudgeMyEventsView, RegistrationCreateView, SubmissionScoreView

app_name = "events"

urlpatterns = [
    # 活动报名
    path("<int:event_id>/registrations/", RegistrationCreateView.as_view(), name="registrations"),
    # 作品打分
    path("submissions/<int:submission_id>/score/", SubmissionScoreView.as_view(), name="submission-score"),
    # 分配评委
    path("judges/assign/", JudgeAssignView.as_view(), name="judge-assign"),
    # 评委被分配的活动
    path("judges/my-events/", JudgeMyEventsView.as_view(), name="judge-my-events"),
]
