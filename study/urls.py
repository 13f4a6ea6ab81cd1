from django.urls import path

from .views import (
    AdminStatsView,
    BookmarkDetailView,
    BookmarkListView,
    BookmarkLookupView,
    ProgressDetailView,
    ProgressListView,
    ProgressSummaryView,
)

urlpatterns = [
    path("progress", ProgressListView.as_view(), name="progress-list"),
    path("progress/summary", ProgressSummaryView.as_view(), name="progress-summary"),
    path("progress/<int:lesson_id>", ProgressDetailView.as_view(), name="progress-detail"),
    path("bookmarks", BookmarkListView.as_view(), name="bookmark-list"),
    path("bookmarks/lookup", BookmarkLookupView.as_view(), name="bookmark-lookup"),
    path("bookmarks/<int:pk>", BookmarkDetailView.as_view(), name="bookmark-detail"),
    path("admin/stats", AdminStatsView.as_view(), name="admin-stats"),
]
