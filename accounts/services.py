# accounts/services.py
from __future__ import annotations

import logging
from typing import Dict, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import IntegrityError, transaction
from django.utils import timezone

from .models import SiteFlag, User

logger = logging.getLogger(__name__)


class RoleChangeError(Exception):
    pass


def claim_first_admin() -> bool:
    """
    Try to insert the admin-exists flag. Returns True only for the caller whose
    insert succeeds; every later (or concurrent) caller hits the unique key.
    Must run inside the registering transaction so a failed signup releases the claim.
    """
    try:
        with transaction.atomic():
            SiteFlag.objects.create(key=SiteFlag.ADMIN_EXISTS)
    except IntegrityError:
        return False
    return True


def send_verification_email(user: User) -> None:
    # Delivery failures are logged; verification never gates access.
    try:
        send_mail(
            subject="Verify your email",
            message=f"Hello {user.display_name or user.email}, please confirm your email address.",
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
    except OSError:
        logger.warning("verification email to %s could not be sent", user.email, exc_info=True)


def register_user(email: str, password: str, display_name: str) -> User:
    """
    Create a user account. The first account ever registered becomes admin,
    all later ones are plain users.
    """
    email = email.strip().lower()
    with transaction.atomic():
        user = User(username=email, email=email, display_name=display_name)
        user.set_password(password)
        user.role = User.ROLE_ADMIN if claim_first_admin() else User.ROLE_USER
        user.last_login = timezone.now()
        user.save()
    logger.info("registered user %s with role %s", user.email, user.role)
    send_verification_email(user)
    return user


def record_sign_in(user: User) -> User:
    """Overwrite last_login on every sign-in."""
    user.last_login = timezone.now()
    user.save(update_fields=["last_login"])
    return user


def set_role(actor: User, target: User, role: str) -> User:
    if actor.role != User.ROLE_ADMIN:
        raise RoleChangeError("Only admins can change user roles.")
    if role not in (User.ROLE_ADMIN, User.ROLE_USER):
        raise RoleChangeError("role must be admin|user.")
    if target.pk == actor.pk and role == User.ROLE_USER:
        raise RoleChangeError("Admins cannot demote themselves.")
    target.role = role
    target.save(update_fields=["role"])
    logger.info("%s set role of %s to %s", actor.email, target.email, role)
    return target


def session_state(user: Optional[User]) -> Dict:
    if user is None or not user.is_authenticated:
        return {"state": "unauthenticated", "user": None}
    return {"state": "authenticated", "user": user}
