import pytest
from django.core.cache import cache
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def _clear_cache():
    # Database rows roll back between tests; cached query payloads must go too.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    from accounts.services import register_user

    return register_user("admin@example.com", "secret-pass", "Pastor Admin")


@pytest.fixture
def student(db, admin_user):
    from accounts.services import register_user

    return register_user("student@example.com", "secret-pass", "Student One")


def _client_for(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def student_client(student):
    return _client_for(student)
