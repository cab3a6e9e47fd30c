from __future__ import annotations

from django.urls import path

from .views import (
    DashboardView,
    EventsOverviewView,
    LeaderboardView,
    SkillDistributionView,
    TeamSuggestionsView,
    TrendsView,
)

app_name = "analytics"

urlpatterns = [
    path("events-overview/", EventsOverviewView.as_view(), name="events-overview"),
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("trends/", TrendsView.as_view(), name="trends"),
    path("leaderboard/", LeaderboardView.as_view(), name="leaderboard"),
    path("skills/", SkillDistributionView.as_view(), name="skills"),
    path("suggestions/", TeamSuggestionsView.as_view(), name="suggestions"),
]
