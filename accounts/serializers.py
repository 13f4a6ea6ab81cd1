# accounts/serializers.py
from rest_framework import serializers

from biblestudy.fields import AwareDateTimeField

from .models import User


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    display_name = serializers.CharField(min_length=1, max_length=150)

    def validate_email(self, v: str):
        v = v.strip().lower()
        if User.objects.filter(email=v).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return v


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class UserSerializer(serializers.ModelSerializer):
    """Read-only snapshot of a user account."""
    created_at = AwareDateTimeField(source="date_joined", read_only=True, fallback_now=True)
    last_login = AwareDateTimeField(read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "display_name",
            "role",
            "email_verified",
            "created_at",
            "last_login",
        )
        read_only_fields = fields
