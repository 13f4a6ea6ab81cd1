from django.urls import path

from .models import User
from .views import AdminUserListView, LoginView, LogoutView, RegisterView, RoleChangeView, SessionView

urlpatterns = [
    path("auth/register", RegisterView.as_view(), name="auth-register"),
    path("auth/login", LoginView.as_view(), name="auth-login"),
    path("auth/logout", LogoutView.as_view(), name="auth-logout"),
    path("auth/session", SessionView.as_view(), name="auth-session"),
    path("admin/users", AdminUserListView.as_view(), name="admin-users"),
    path("admin/users/<int:user_id>/promote", RoleChangeView.as_view(role=User.ROLE_ADMIN), name="admin-user-promote"),
    path("admin/users/<int:user_id>/demote", RoleChangeView.as_view(role=User.ROLE_USER), name="admin-user-demote"),
]
