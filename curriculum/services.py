# curriculum/services.py
from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import F, QuerySet
from django.utils.text import get_valid_filename

from .models import Class, Lesson, Main

logger = logging.getLogger(__name__)

# Filter name -> model lookup; only equality matching is supported.
LESSON_FILTERS = {
    "status": "status",
    "main_id": "main_id",
    "class_id": "klass_id",
    "category": "category",
    "difficulty": "difficulty",
    "author": "created_by_id",
}


class HierarchyConflict(Exception):
    """Raised when deleting a parent that still has children."""
    def __init__(self, message: str, blocking: Dict[str, int]):
        super().__init__(message)
        self.blocking = blocking


# ---- Mains ---------------------------------------------------------------

def create_main(owner, data: Dict) -> Main:
    return Main.objects.create(created_by=owner, **data)


def get_mains() -> QuerySet:
    return Main.objects.order_by("order", "id")


def delete_main(main: Main) -> None:
    """Delete a Main only when no Class or Lesson still points at it."""
    with transaction.atomic():
        blocking = {
            "classes": Class.objects.filter(main=main).count(),
            "lessons": Lesson.objects.filter(main=main).count(),
        }
        if any(blocking.values()):
            logger.info("refused to delete main %s: %s", main.pk, blocking)
            raise HierarchyConflict("Main still has classes or lessons.", blocking)
        main.delete()


# ---- Classes -------------------------------------------------------------

def create_class(owner, data: Dict) -> Class:
    return Class.objects.create(created_by=owner, **data)


def get_classes_by_main(main_id: int) -> QuerySet:
    return Class.objects.filter(main_id=main_id).order_by("order", "id")


def delete_class(klass: Class) -> None:
    with transaction.atomic():
        blocking = {"lessons": Lesson.objects.filter(klass=klass).count()}
        if blocking["lessons"]:
            logger.info("refused to delete class %s: %s", klass.pk, blocking)
            raise HierarchyConflict("Class still has lessons.", blocking)
        klass.delete()


# ---- Lessons -------------------------------------------------------------

def create_lesson(owner, data: Dict) -> Lesson:
    data = dict(data)
    data.setdefault("order", 0)
    return Lesson.objects.create(created_by=owner, views=0, **data)


def update_instance(instance, data: Dict):
    """Merge fields into an entity; updated_at is refreshed by auto_now."""
    for name, value in data.items():
        setattr(instance, name, value)
    instance.save()
    return instance


def get_lessons(filters: Optional[Dict] = None) -> QuerySet:
    """All lessons matching the equality filters, most recently updated first."""
    qs = Lesson.objects.select_related("main", "klass")
    for key, lookup in LESSON_FILTERS.items():
        value = (filters or {}).get(key)
        if value not in (None, ""):
            qs = qs.filter(**{lookup: value})
    return qs.order_by("-updated_at", "-id")


def get_published_lessons() -> QuerySet:
    return Lesson.objects.filter(status=Lesson.STATUS_PUBLISHED).order_by("order", "id")


def _matches(lesson: Lesson, needle: str) -> bool:
    haystacks: Iterable[str] = (
        lesson.title,
        lesson.content,
        lesson.bible_reference,
        lesson.category,
    )
    return any(needle in (h or "").lower() for h in haystacks)


def search_lessons(text: str, filters: Optional[Dict] = None, limit: Optional[int] = None) -> List[Lesson]:
    """
    Case-insensitive substring search over title/content/reference/category.

    The filtered set is fetched first and then text-filtered in memory, so the
    cost grows with the number of lessons matching the filters. `limit` caps
    how many filtered lessons are scanned. There is no relevance ranking; the
    order is that of get_lessons().
    """
    lessons, _ = search_lessons_capped(text, filters, limit)
    return lessons


def search_lessons_capped(
    text: str, filters: Optional[Dict] = None, limit: Optional[int] = None
) -> Tuple[List[Lesson], bool]:
    """search_lessons() plus whether the scan stopped at `limit` with lessons left unscanned."""
    qs = get_lessons(filters)
    if limit is None:
        lessons, truncated = list(qs), False
    else:
        lessons = list(qs[:limit + 1])
        truncated = len(lessons) > limit
        lessons = lessons[:limit]
    if text:
        needle = text.lower()
        lessons = [lesson for lesson in lessons if _matches(lesson, needle)]
    return lessons, truncated


def increment_lesson_views(lesson_id: int) -> int:
    """Atomic counter bump at the database; returns the number of rows updated."""
    return Lesson.objects.filter(pk=lesson_id).update(views=F("views") + 1)


# ---- Uploads -------------------------------------------------------------

def upload_path(uploader_id, filename: str) -> str:
    """Storage path: uploader folder + millisecond timestamp prefix to avoid collisions."""
    return f"lessons/{uploader_id}/{int(time.time() * 1000)}_{get_valid_filename(filename)}"


def validate_image(upload) -> Optional[str]:
    """Return the rejection reason for an uploaded file, or None if acceptable."""
    content_type = getattr(upload, "content_type", "") or ""
    if not content_type.startswith("image/"):
        return "Invalid file type: only image files are accepted."
    if upload.size > settings.UPLOAD_MAX_BYTES:
        return "File too large: images must be 5MB or smaller."
    return None


def store_images(uploader, files) -> Dict[str, List]:
    """
    Store a batch of images one file at a time. Rejected files are skipped and
    reported; files stored before a later failure stay stored.
    """
    urls: List[str] = []
    skipped: List[Dict[str, str]] = []
    for upload in files:
        reason = validate_image(upload)
        if reason:
            logger.info("skipped upload %s from user %s: %s", upload.name, uploader.pk, reason)
            skipped.append({"name": upload.name, "reason": reason})
            continue
        saved = default_storage.save(upload_path(uploader.pk, upload.name), upload)
        urls.append(default_storage.url(saved))
    return {"urls": urls, "skipped": skipped}
