from django.urls import path

from .views import (
    ClassDetailView,
    ClassListView,
    LessonDetailView,
    LessonListView,
    LessonViewCountView,
    MainClassesView,
    MainDetailView,
    MainListView,
    PublishedLessonListView,
    ScriptureQuoteView,
    UploadView,
)

urlpatterns = [
    path("mains", MainListView.as_view(), name="main-list"),
    path("mains/<int:pk>", MainDetailView.as_view(), name="main-detail"),
    path("mains/<int:pk>/classes", MainClassesView.as_view(), name="main-classes"),
    path("classes", ClassListView.as_view(), name="class-list"),
    path("classes/<int:pk>", ClassDetailView.as_view(), name="class-detail"),
    path("lessons", LessonListView.as_view(), name="lesson-list"),
    path("lessons/published", PublishedLessonListView.as_view(), name="lesson-published"),
    path("lessons/<int:pk>", LessonDetailView.as_view(), name="lesson-detail"),
    path("lessons/<int:pk>/view", LessonViewCountView.as_view(), name="lesson-view"),
    path("uploads", UploadView.as_view(), name="uploads"),
    path("editor/scripture-quote", ScriptureQuoteView.as_view(), name="editor-scripture-quote"),
]
