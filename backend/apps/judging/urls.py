from __future__ import annotations

from django.urls import path

from .views import EvaluationCompleteView, EvaluationUpsertView, EventEvaluationExportView, EventEvaluationListView

app_name = "judging"

urlpatterns = [
    # 提交 / 更新评审
    path("", EvaluationUpsertView.as_view(), name="upsert"),
    # 活动评审列表
    path("events/<int:event_id>/", EventEvaluationListView.as_view(), name="event-list"),
    # 活动评审导出
    path("events/<int:event_id>/export/", EventEvaluationExportView.as_view(), name="event-export"),
    # 确认评审
    path("<int:evaluation_id>/complete/", EvaluationCompleteView.as_view(), name="complete"),
]
