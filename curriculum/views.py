# curriculum/views.py
from __future__ import annotations

from django.conf import settings
from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdminRole, IsAdminRoleOrReadOnly

from .cache import cached_query
from .models import Class, Lesson, Main
from .richtext import scripture_quote
from .serializers import ClassSerializer, LessonSerializer, MainSerializer, ScriptureQuoteSerializer
from .services import (
    LESSON_FILTERS,
    HierarchyConflict,
    create_class,
    create_lesson,
    create_main,
    delete_class,
    delete_main,
    get_classes_by_main,
    get_mains,
    get_published_lessons,
    increment_lesson_views,
    search_lessons_capped,
    store_images,
    update_instance,
)


def _is_admin(request) -> bool:
    return getattr(request.user, "role", None) == "admin"


def _conflict(e: HierarchyConflict) -> Response:
    return Response({'detail': str(e), 'blocking': e.blocking}, status=status.HTTP_409_CONFLICT)


class MainListView(APIView):
    """GET /api/mains (ordered by `order`), POST /api/mains (admin)."""
    permission_classes = [IsAdminRoleOrReadOnly]

    def get(self, request):
        items = cached_query("mains", {}, lambda: MainSerializer(get_mains(), many=True).data)
        return Response({'items': items})

    def post(self, request):
        ser = MainSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        main = create_main(request.user, ser.validated_data)
        return Response(MainSerializer(main).data, status=status.HTTP_201_CREATED)


class MainDetailView(APIView):
    """GET / PATCH / DELETE /api/mains/{id}"""
    permission_classes = [IsAdminRoleOrReadOnly]

    def get(self, request, pk: int):
        return Response(MainSerializer(get_object_or_404(Main, pk=pk)).data)

    def patch(self, request, pk: int):
        main = get_object_or_404(Main, pk=pk)
        ser = MainSerializer(main, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        update_instance(main, ser.validated_data)
        return Response(MainSerializer(main).data)

    def delete(self, request, pk: int):
        main = get_object_or_404(Main, pk=pk)
        try:
            delete_main(main)
        except HierarchyConflict as e:
            return _conflict(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MainClassesView(APIView):
    """GET /api/mains/{id}/classes"""
    def get(self, request, pk: int):
        get_object_or_404(Main, pk=pk)
        items = cached_query(
            "classes", {'main_id': pk},
            lambda: ClassSerializer(get_classes_by_main(pk), many=True).data,
        )
        return Response({'items': items})


class ClassListView(APIView):
    """POST /api/classes (admin)"""
    permission_classes = [IsAdminRole]

    def post(self, request):
        ser = ClassSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        klass = create_class(request.user, ser.validated_data)
        return Response(ClassSerializer(klass).data, status=status.HTTP_201_CREATED)


class ClassDetailView(APIView):
    """GET / PATCH / DELETE /api/classes/{id}"""
    permission_classes = [IsAdminRoleOrReadOnly]

    def get(self, request, pk: int):
        return Response(ClassSerializer(get_object_or_404(Class, pk=pk)).data)

    def patch(self, request, pk: int):
        klass = get_object_or_404(Class, pk=pk)
        ser = ClassSerializer(klass, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        update_instance(klass, ser.validated_data)
        return Response(ClassSerializer(klass).data)

    def delete(self, request, pk: int):
        klass = get_object_or_404(Class, pk=pk)
        try:
            delete_class(klass)
        except HierarchyConflict as e:
            return _conflict(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class LessonListView(APIView):
    """
    GET /api/lessons
      ?query=text
      &status=draft|published|archived
      &main_id= &class_id= &category= &difficulty= &author=
    Non-admin readers only ever see published lessons.
    POST /api/lessons (admin)
    """
    permission_classes = [IsAdminRoleOrReadOnly]

    def get(self, request):
        filters = {k: request.query_params.get(k) for k in LESSON_FILTERS}
        if not _is_admin(request):
            filters['status'] = Lesson.STATUS_PUBLISHED
        text = (request.query_params.get('query') or '').strip()

        allowed = dict(Lesson.STATUS_CHOICES)
        if filters.get('status') and filters['status'] not in allowed:
            return Response({'detail': 'status must be draft|published|archived.'}, status=400)
        for key in ('main_id', 'class_id', 'author'):
            if filters.get(key) and not str(filters[key]).isdigit():
                return Response({'detail': f'{key} must be an integer id.'}, status=400)

        limit = settings.LESSON_SEARCH_LIMIT

        def load():
            lessons, truncated = search_lessons_capped(text, filters, limit=limit)
            return {'items': LessonSerializer(lessons, many=True).data, 'truncated': truncated}

        page = cached_query("lessons", dict(filters, query=text, limit=limit), load)
        # truncated: only the `scan_limit` most recently updated lessons were searched.
        return Response({
            'items': page['items'],
            'count': len(page['items']),
            'truncated': page['truncated'],
            'scan_limit': limit,
        })

    def post(self, request):
        ser = LessonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        lesson = create_lesson(request.user, ser.validated_data)
        return Response(LessonSerializer(lesson).data, status=status.HTTP_201_CREATED)


class PublishedLessonListView(APIView):
    """GET /api/lessons/published (ordered by `order`)"""
    def get(self, request):
        items = cached_query(
            "published", {},
            lambda: LessonSerializer(get_published_lessons(), many=True).data,
        )
        return Response({'items': items})


class LessonDetailView(APIView):
    """GET / PATCH / DELETE /api/lessons/{id}"""
    permission_classes = [IsAdminRoleOrReadOnly]

    def get(self, request, pk: int):
        lesson = get_object_or_404(Lesson, pk=pk)
        if lesson.status != Lesson.STATUS_PUBLISHED and not _is_admin(request):
            raise Http404
        return Response(LessonSerializer(lesson).data)

    def patch(self, request, pk: int):
        lesson = get_object_or_404(Lesson, pk=pk)
        ser = LessonSerializer(lesson, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        update_instance(lesson, ser.validated_data)
        return Response(LessonSerializer(lesson).data)

    def delete(self, request, pk: int):
        lesson = get_object_or_404(Lesson, pk=pk)
        lesson.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class LessonViewCountView(APIView):
    """POST /api/lessons/{id}/view -> atomic views + 1"""
    def post(self, request, pk: int):
        lesson = get_object_or_404(Lesson, pk=pk)
        if lesson.status != Lesson.STATUS_PUBLISHED and not _is_admin(request):
            raise Http404
        increment_lesson_views(pk)
        lesson.refresh_from_db(fields=['views'])
        return Response({'id': lesson.pk, 'views': lesson.views})


class UploadView(APIView):
    """
    POST /api/uploads (multipart, field `files`, admin only)
    Returns the stored URLs and the files that were skipped with the reason.
    """
    permission_classes = [IsAdminRole]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        files = request.FILES.getlist('files')
        if not files:
            return Response({'detail': 'files is required.'}, status=400)
        if len(files) > settings.UPLOAD_MAX_FILES:
            return Response(
                {'detail': f'You can only upload up to {settings.UPLOAD_MAX_FILES} images.'},
                status=400,
            )
        result = store_images(request.user, files)
        code = status.HTTP_201_CREATED if result['urls'] else status.HTTP_200_OK
        return Response(result, status=code)


class ScriptureQuoteView(APIView):
    """POST /api/editor/scripture-quote -> styled blockquote HTML for the selection"""
    permission_classes = [IsAdminRole]

    def post(self, request):
        ser = ScriptureQuoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return Response({'html': scripture_quote(ser.validated_data['selection'])})
