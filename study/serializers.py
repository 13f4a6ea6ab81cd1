# study/serializers.py
from rest_framework import serializers

from biblestudy.fields import AwareDateTimeField
from curriculum.models import Lesson

from .models import Bookmark, UserProgress
from .services import status_label


class ProgressWriteSerializer(serializers.Serializer):
    """
    Partial progress write.
    Notes:
      - every field is optional; only the fields sent are merged.
      - progress_percentage must be within 0..100.
      - time_spent replaces the stored total; add_time_spent adds seconds to it.
    """
    completed = serializers.BooleanField(required=False)
    progress_percentage = serializers.IntegerField(required=False, min_value=0, max_value=100)
    time_spent = serializers.IntegerField(required=False, min_value=0)
    add_time_spent = serializers.IntegerField(required=False, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if "time_spent" in attrs and "add_time_spent" in attrs:
            raise serializers.ValidationError("Send either time_spent or add_time_spent, not both.")
        return attrs


class ProgressSerializer(serializers.ModelSerializer):
    """Read-only snapshot of a progress record with its derived status label."""
    user_id = serializers.IntegerField(read_only=True)
    lesson_id = serializers.IntegerField(read_only=True)
    completed_at = AwareDateTimeField(read_only=True)
    updated_at = AwareDateTimeField(read_only=True, fallback_now=True)
    status = serializers.SerializerMethodField()

    class Meta:
        model = UserProgress
        fields = (
            "id",
            "user_id",
            "lesson_id",
            "completed",
            "completed_at",
            "progress_percentage",
            "time_spent",
            "notes",
            "updated_at",
            "status",
        )
        read_only_fields = fields

    def get_status(self, obj) -> str:
        return status_label(obj)


class BookmarkCreateSerializer(serializers.Serializer):
    lesson_id = serializers.PrimaryKeyRelatedField(queryset=Lesson.objects.all())
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BookmarkSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    lesson_id = serializers.IntegerField(read_only=True)
    created_at = AwareDateTimeField(read_only=True, fallback_now=True)

    class Meta:
        model = Bookmark
        fields = ("id", "user_id", "lesson_id", "notes", "created_at")
        read_only_fields = ("id", "user_id", "lesson_id", "created_at")


def _lesson_brief(lesson):
    return {
        "id": lesson.pk,
        "title": lesson.title,
        "bible_reference": lesson.bible_reference,
        "status": lesson.status,
        "difficulty": lesson.difficulty,
        "main_id": lesson.main_id,
        "class_id": lesson.klass_id,
    }


def _named(obj):
    if obj is None:
        return None
    return {"id": obj.pk, "title": obj.title}


def serialize_row(row, key: str, serializer_class):
    """Joined row -> {<key>, lesson, main, class} payload."""
    return {
        key: serializer_class(row[key]).data,
        "lesson": _lesson_brief(row["lesson"]),
        "main": _named(row["main"]),
        "class": _named(row["class"]),
    }
