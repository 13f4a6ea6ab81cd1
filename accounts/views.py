# accounts/views.py
from __future__ import annotations

from django.contrib.auth import authenticate
from django.db import IntegrityError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import User
from .permissions import IsAdminRole
from .serializers import LoginSerializer, RegisterSerializer, UserSerializer
from .services import RoleChangeError, record_sign_in, register_user, session_state, set_role


class RegisterView(APIView):
    """POST /api/auth/register (first account ever registered becomes admin)."""
    permission_classes = [AllowAny]

    def post(self, request):
        ser = RegisterSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            user = register_user(**ser.validated_data)
        except IntegrityError:
            # Lost a race against a concurrent signup with the same email.
            return Response({'detail': 'An account with this email already exists.'}, status=400)
        token, _ = Token.objects.get_or_create(user=user)
        return Response({
            'user': UserSerializer(user).data,
            'token': token.key,
            'needs_email_verification': True,
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """POST /api/auth/login"""
    permission_classes = [AllowAny]

    def post(self, request):
        ser = LoginSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        email = ser.validated_data['email'].strip().lower()
        user = authenticate(request, username=email, password=ser.validated_data['password'])
        if user is None:
            return Response({'detail': 'Invalid email or password.'}, status=status.HTTP_401_UNAUTHORIZED)
        record_sign_in(user)
        token, _ = Token.objects.get_or_create(user=user)
        return Response({'user': UserSerializer(user).data, 'token': token.key}, status=200)


class LogoutView(APIView):
    """POST /api/auth/logout"""
    def post(self, request):
        Token.objects.filter(user=request.user).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class SessionView(APIView):
    """GET /api/auth/session -> authenticated | unauthenticated"""
    permission_classes = [AllowAny]

    def get(self, request):
        state = session_state(request.user)
        user = state['user']
        return Response({
            'state': state['state'],
            'user': UserSerializer(user).data if user is not None else None,
        })


class AdminUserListView(APIView):
    """GET /api/admin/users"""
    permission_classes = [IsAdminRole]

    def get(self, request):
        users = User.objects.order_by('date_joined', 'id')
        return Response({'items': UserSerializer(users, many=True).data})


class RoleChangeView(APIView):
    """POST /api/admin/users/{id}/promote | /demote"""
    permission_classes = [IsAdminRole]
    role = User.ROLE_USER

    def post(self, request, user_id: int):
        target = get_object_or_404(User, pk=user_id)
        try:
            set_role(request.user, target, self.role)
        except RoleChangeError as e:
            return Response({'detail': str(e)}, status=status.HTTP_403_FORBIDDEN)
        return Response(UserSerializer(target).data, status=200)
