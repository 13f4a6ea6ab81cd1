# study/views.py
from __future__ import annotations

import datetime as dt

import pytz
from django.http import Http404
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdminRole
from curriculum.models import Lesson
from curriculum.serializers import LessonSerializer

from .models import Bookmark
from .serializers import (
    BookmarkCreateSerializer,
    BookmarkSerializer,
    ProgressSerializer,
    ProgressWriteSerializer,
    serialize_row,
)
from .services import (
    admin_stats,
    bookmark_rows,
    completion_activity,
    create_bookmark,
    filter_rows,
    get_bookmark_by_user_and_lesson,
    get_user_progress,
    progress_rows,
    progress_stats,
    to_aware_utc,
    update_user_progress,
)


def _restore_plus(value):
    """Tolerate a space where the '+' of a UTC offset should be (query string not URL-encoded)."""
    if not value or 'T' not in value:
        return value
    date_part, time_part = value.split('T', 1)
    if ' ' in time_part:
        time_part = time_part.replace(' ', '+', 1)
    return f'{date_part}T{time_part}'


def _visible_lesson(request, lesson_id) -> Lesson:
    lesson = get_object_or_404(Lesson, pk=lesson_id)
    if lesson.status != Lesson.STATUS_PUBLISHED and getattr(request.user, 'role', None) != 'admin':
        raise Http404
    return lesson


def _int_param(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be an integer id.')


class ProgressListView(APIView):
    """
    GET /api/progress
      ?query=text
      &status=all|completed|in-progress
      &main_id=
    Returns the user's progress joined with lesson/main/class plus overall stats.
    """
    def get(self, request):
        state = request.query_params.get('status', 'all')
        if state not in ('all', 'completed', 'in-progress'):
            return Response({'detail': 'status must be all|completed|in-progress.'}, status=400)
        try:
            main_id = _int_param(request, 'main_id')
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)

        rows = filter_rows(
            progress_rows(request.user),
            text=request.query_params.get('query', ''),
            status=state,
            main_id=main_id,
        )
        return Response({
            'items': [serialize_row(r, 'progress', ProgressSerializer) for r in rows],
            'stats': progress_stats(request.user),
        })


class ProgressDetailView(APIView):
    """GET / PUT /api/progress/{lesson_id} (PUT is an upsert of the fields sent)"""
    def get(self, request, lesson_id: int):
        progress = get_user_progress(request.user, lesson_id)
        if progress is None:
            return Response({'detail': 'No progress recorded for this lesson.'}, status=404)
        return Response(ProgressSerializer(progress).data)

    def put(self, request, lesson_id: int):
        lesson = _visible_lesson(request, lesson_id)
        ser = ProgressWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        progress, created = update_user_progress(request.user, lesson, ser.validated_data)
        code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return Response(ProgressSerializer(progress).data, status=code)

    patch = put


class ProgressSummaryView(APIView):
    """
    GET /api/progress/summary
      ?from=ISO (default: 7 days before `to`)
      &to=ISO (default: now)
      &granularity=day|month
      &tz=Asia/Tokyo
    Completions per local bucket over [from, to), empty buckets included.
    """
    def get(self, request):
        dt_to = request.query_params.get('to')
        dt_from = request.query_params.get('from')
        gran = request.query_params.get('granularity', 'day')
        tzname = request.query_params.get('tz', 'UTC')

        dt_from = _restore_plus(dt_from)
        dt_to = _restore_plus(dt_to)

        if gran not in ('day', 'month'):
            return Response({'detail': 'granularity must be day|month.'}, status=400)
        try:
            pytz.timezone(tzname)
        except pytz.UnknownTimeZoneError:
            return Response({'detail': 'invalid tz.'}, status=400)

        end = dt_to or timezone.now()
        start = dt_from
        try:
            if start is None:
                start = to_aware_utc(end) - dt.timedelta(days=7)
            buckets = completion_activity(request.user, start, end, granularity=gran, tz=tzname)
        except (ValueError, OverflowError) as e:
            return Response({'detail': str(e)}, status=400)

        return Response({
            'granularity': gran,
            'tz': tzname,
            'buckets': buckets,
            'totals': {
                'completed': sum(b['completed'] for b in buckets),
                'study_minutes': sum(b['study_minutes'] for b in buckets),
            },
        }, status=status.HTTP_200_OK)


class BookmarkListView(APIView):
    """
    GET /api/bookmarks?query=&main_id=  (joined with lesson/main/class)
    POST /api/bookmarks (201 on create, 200 when the lesson is already bookmarked)
    """
    def get(self, request):
        try:
            main_id = _int_param(request, 'main_id')
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)
        rows = filter_rows(bookmark_rows(request.user), text=request.query_params.get('query', ''), main_id=main_id)
        return Response({'items': [serialize_row(r, 'bookmark', BookmarkSerializer) for r in rows]})

    def post(self, request):
        ser = BookmarkCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        lesson = _visible_lesson(request, ser.validated_data['lesson_id'].pk)
        bookmark, created = create_bookmark(request.user, lesson, ser.validated_data['notes'])
        code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return Response(BookmarkSerializer(bookmark).data, status=code)


class BookmarkLookupView(APIView):
    """GET /api/bookmarks/lookup?lesson_id= -> the user's bookmark for the lesson, or 404"""
    def get(self, request):
        try:
            lesson_id = _int_param(request, 'lesson_id')
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)
        if lesson_id is None:
            return Response({'detail': 'lesson_id is required.'}, status=400)
        bookmark = get_bookmark_by_user_and_lesson(request.user, lesson_id)
        if bookmark is None:
            return Response({'detail': 'Not bookmarked.'}, status=404)
        return Response(BookmarkSerializer(bookmark).data)


class BookmarkDetailView(APIView):
    """PATCH / DELETE /api/bookmarks/{id} (own bookmarks only)"""
    def patch(self, request, pk: int):
        bookmark = get_object_or_404(Bookmark, pk=pk, user=request.user)
        ser = BookmarkSerializer(bookmark, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        ser.save()
        return Response(ser.data)

    def delete(self, request, pk: int):
        bookmark = get_object_or_404(Bookmark, pk=pk, user=request.user)
        bookmark.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class AdminStatsView(APIView):
    """GET /api/admin/stats"""
    permission_classes = [IsAdminRole]

    def get(self, request):
        stats = admin_stats()
        stats['recent_lessons'] = LessonSerializer(stats['recent_lessons'], many=True).data
        return Response(stats)
