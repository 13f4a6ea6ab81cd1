from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_ADMIN = "admin"
    ROLE_USER = "user"
    ROLE_CHOICES = (
        (ROLE_ADMIN, "Admin"),
        (ROLE_USER, "User"),
    )

    email = models.EmailField(unique=True)                           # Login identifier
    display_name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_USER, db_index=True)
    email_verified = models.BooleanField(default=False)             # Informational only, never gates access

    @property
    def is_admin_role(self) -> bool:
        return self.role == self.ROLE_ADMIN

    def __str__(self):
        return f"{self.email} - {self.role}"


class SiteFlag(models.Model):
    """One row per site-wide fact; the unique key makes creating a flag a compare-and-set."""
    ADMIN_EXISTS = "admin-exists"

    key = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.key
