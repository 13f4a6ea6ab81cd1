from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models


class UserProgress(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="progress")
    lesson = models.ForeignKey("curriculum.Lesson", on_delete=models.CASCADE, related_name="progress_entries")
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True, db_index=True)   # Stamped when completed is set
    progress_percentage = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    time_spent = models.PositiveIntegerField(default=0)                          # Cumulative seconds
    notes = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "lesson"], name="uq_progress_user_lesson"),
        ]
        indexes = [
            models.Index(fields=["user", "completed_at"], name="idx_progress_user_completed"),
        ]

    def __str__(self):
        return f"{self.user_id} - {self.lesson_id} ({self.progress_percentage}%)"


class Bookmark(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bookmarks")
    lesson = models.ForeignKey("curriculum.Lesson", on_delete=models.CASCADE, related_name="bookmarks")
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "lesson"], name="uq_bookmark_user_lesson"),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.user_id} bookmarked {self.lesson_id}"
