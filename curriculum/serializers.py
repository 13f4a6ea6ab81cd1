# curriculum/serializers.py
from django.conf import settings
from rest_framework import serializers

from biblestudy.fields import AwareDateTimeField

from .models import Class, Lesson, Main
from .richtext import sanitize_html


class MainSerializer(serializers.ModelSerializer):
    created_by = serializers.IntegerField(source="created_by_id", read_only=True)
    created_at = AwareDateTimeField(read_only=True, fallback_now=True)
    updated_at = AwareDateTimeField(read_only=True, fallback_now=True)

    class Meta:
        model = Main
        fields = ("id", "title", "description", "order", "created_by", "created_at", "updated_at")
        read_only_fields = ("id",)
        extra_kwargs = {"order": {"required": False}, "description": {"required": False}}

    def validate_title(self, v: str):
        if not v.strip():
            raise serializers.ValidationError("title must not be empty.")
        return v.strip()


class ClassSerializer(serializers.ModelSerializer):
    main_id = serializers.PrimaryKeyRelatedField(source="main", queryset=Main.objects.all())
    created_by = serializers.IntegerField(source="created_by_id", read_only=True)
    created_at = AwareDateTimeField(read_only=True, fallback_now=True)
    updated_at = AwareDateTimeField(read_only=True, fallback_now=True)

    class Meta:
        model = Class
        fields = ("id", "main_id", "title", "description", "order", "created_by", "created_at", "updated_at")
        read_only_fields = ("id",)
        extra_kwargs = {"order": {"required": False}, "description": {"required": False}}

    def validate_title(self, v: str):
        if not v.strip():
            raise serializers.ValidationError("title must not be empty.")
        return v.strip()


class LessonSerializer(serializers.ModelSerializer):
    """
    Lesson create/update/read serializer.
    Notes:
      - content is passed through the HTML allow-list before it is stored.
      - class_id is optional; when given, the class must belong to main_id.
      - images holds at most UPLOAD_MAX_FILES URLs, stored verbatim.
      - views is read-only; it only changes through the view counter endpoint.
    """
    main_id = serializers.PrimaryKeyRelatedField(source="main", queryset=Main.objects.all())
    class_id = serializers.PrimaryKeyRelatedField(
        source="klass", queryset=Class.objects.all(), required=False, allow_null=True
    )
    images = serializers.ListField(child=serializers.CharField(max_length=1000), required=False)
    created_by = serializers.IntegerField(source="created_by_id", read_only=True)
    created_at = AwareDateTimeField(read_only=True, fallback_now=True)
    updated_at = AwareDateTimeField(read_only=True, fallback_now=True)

    class Meta:
        model = Lesson
        fields = (
            "id",
            "main_id",
            "class_id",
            "title",
            "bible_reference",
            "content",
            "images",
            "category",
            "difficulty",
            "status",
            "order",
            "views",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "views")
        extra_kwargs = {
            "order": {"required": False},
            "content": {"required": False},
            "bible_reference": {"required": False},
            "category": {"required": False},
            "difficulty": {"required": False},
            "status": {"required": False},
        }

    def validate_title(self, v: str):
        if not v.strip():
            raise serializers.ValidationError("title must not be empty.")
        return v.strip()

    def validate_content(self, v: str):
        return sanitize_html(v)

    def validate_images(self, v):
        if len(v) > settings.UPLOAD_MAX_FILES:
            raise serializers.ValidationError(f"A lesson holds at most {settings.UPLOAD_MAX_FILES} images.")
        return v

    def validate(self, attrs):
        main = attrs.get("main", getattr(self.instance, "main", None))
        klass = attrs.get("klass", getattr(self.instance, "klass", None))
        if klass is not None and main is not None and klass.main_id != main.pk:
            raise serializers.ValidationError("class_id must belong to main_id.")
        return attrs


class ScriptureQuoteSerializer(serializers.Serializer):
    selection = serializers.CharField(required=False, allow_blank=True, default="")
