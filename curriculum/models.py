from django.conf import settings
from django.db import models


class Main(models.Model):
    """Top-level curriculum category."""
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.IntegerField(default=0, db_index=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return self.title


class Class(models.Model):
    """Optional grouping of lessons beneath a Main."""
    main = models.ForeignKey(Main, on_delete=models.PROTECT, related_name="classes")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.IntegerField(default=0)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "id"]
        verbose_name_plural = "classes"
        indexes = [
            models.Index(fields=["main", "order"], name="idx_class_main_order"),
        ]

    def __str__(self):
        return self.title


class Lesson(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_PUBLISHED = "published"
    STATUS_ARCHIVED = "archived"
    STATUS_CHOICES = (
        (STATUS_DRAFT, "Draft"),
        (STATUS_PUBLISHED, "Published"),
        (STATUS_ARCHIVED, "Archived"),
    )
    DIFFICULTY_CHOICES = (
        ("beginner", "Beginner"),
        ("intermediate", "Intermediate"),
        ("advanced", "Advanced"),
    )

    main = models.ForeignKey(Main, on_delete=models.PROTECT, related_name="lessons")
    klass = models.ForeignKey(Class, on_delete=models.PROTECT, null=True, blank=True, related_name="lessons")
    title = models.CharField(max_length=200)
    bible_reference = models.CharField(max_length=200, blank=True)   # e.g. "John 10:1-18"
    content = models.TextField(blank=True)                           # Sanitized HTML
    images = models.JSONField(default=list, blank=True)              # Image URLs, stored verbatim
    category = models.CharField(max_length=100, blank=True, db_index=True)
    difficulty = models.CharField(max_length=20, choices=DIFFICULTY_CHOICES, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    order = models.IntegerField(default=0)
    views = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "order"], name="idx_lesson_status_order"),
            models.Index(fields=["main", "status"], name="idx_lesson_main_status"),
        ]

    def __str__(self):
        return self.title
