# study/services.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, List, Optional, Tuple

import pytz
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from accounts.models import User
from curriculum.models import Lesson

from .models import Bookmark, UserProgress

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = ("completed", "progress_percentage", "time_spent", "notes")

# Largest completion summary window, in buckets.
SUMMARY_MAX_BUCKETS = {"day": 366, "month": 120}


# ---- Progress upsert -----------------------------------------------------

def _merge_progress(obj: UserProgress, data: Dict) -> None:
    """Apply a partial progress write. completed_at is stamped on the transition to completed."""
    was_completed = obj.completed
    for name in PROGRESS_FIELDS:
        if name in data:
            setattr(obj, name, data[name])
    delta = data.get("add_time_spent")
    if delta:
        obj.time_spent = (obj.time_spent or 0) + int(delta)
    if obj.completed and not was_completed:
        obj.completed_at = timezone.now()
    elif not obj.completed:
        obj.completed_at = None


def update_user_progress(user, lesson: Lesson, data: Dict) -> Tuple[UserProgress, bool]:
    """
    Upsert the single progress row for (user, lesson).
    Creates it on the first write and merges into it afterwards; returns (row, created).
    """
    try:
        with transaction.atomic():
            obj = UserProgress.objects.select_for_update().filter(user=user, lesson=lesson).first()
            created = obj is None
            if created:
                obj = UserProgress(user=user, lesson=lesson)
            _merge_progress(obj, data)
            obj.save()
    except IntegrityError:
        # Handle race: a concurrent first write created the row; merge into it instead.
        logger.debug("progress row for user %s lesson %s created concurrently", user.pk, lesson.pk)
        with transaction.atomic():
            obj = UserProgress.objects.select_for_update().get(user=user, lesson=lesson)
            _merge_progress(obj, data)
            obj.save()
        created = False
    return obj, created


def get_user_progress(user, lesson_id: int) -> Optional[UserProgress]:
    return UserProgress.objects.filter(user=user, lesson_id=lesson_id).first()


# ---- Bookmarks -----------------------------------------------------------

def create_bookmark(user, lesson: Lesson, notes: str = "") -> Tuple[Bookmark, bool]:
    """One bookmark per (user, lesson); repeating the call returns the existing one."""
    try:
        with transaction.atomic():
            return Bookmark.objects.get_or_create(user=user, lesson=lesson, defaults={"notes": notes})
    except IntegrityError:
        return Bookmark.objects.get(user=user, lesson=lesson), False


def get_bookmark_by_user_and_lesson(user, lesson_id: int) -> Optional[Bookmark]:
    return Bookmark.objects.filter(user=user, lesson_id=lesson_id).first()


# ---- Aggregation ---------------------------------------------------------

def _row(record, key: str) -> Dict:
    lesson = record.lesson
    return {key: record, "lesson": lesson, "main": lesson.main, "class": lesson.klass}


def progress_rows(user) -> List[Dict]:
    """
    Join the user's progress records with their lesson, main and class in one query.
    Deleting a lesson deletes its progress rows, so every row resolves.
    """
    qs = (
        UserProgress.objects.filter(user=user)
        .select_related("lesson", "lesson__main", "lesson__klass")
        .order_by("-updated_at", "-id")
    )
    return [_row(p, "progress") for p in qs]


def bookmark_rows(user) -> List[Dict]:
    qs = (
        Bookmark.objects.filter(user=user)
        .select_related("lesson", "lesson__main", "lesson__klass")
        .order_by("-created_at", "-id")
    )
    return [_row(b, "bookmark") for b in qs]


def filter_rows(rows: List[Dict], *, text: str = "", status: str = "all", main_id: Optional[int] = None) -> List[Dict]:
    """
    Narrow joined rows by:
      - text: case-insensitive match on lesson title or bible reference
      - status: all | completed | in-progress (progress rows only)
      - main_id: lesson's main
    """
    needle = (text or "").lower()
    out = []
    for row in rows:
        lesson = row["lesson"]
        if needle and needle not in lesson.title.lower() and needle not in (lesson.bible_reference or "").lower():
            continue
        progress = row.get("progress")
        if progress is not None and status == "completed" and not progress.completed:
            continue
        if progress is not None and status == "in-progress" and progress.completed:
            continue
        if main_id is not None and lesson.main_id != main_id:
            continue
        out.append(row)
    return out


def status_label(progress: UserProgress) -> str:
    if progress.completed:
        return "completed"
    if progress.progress_percentage > 0:
        return "in_progress"
    return "not_started"


def progress_stats(user) -> Dict:
    """Totals over all of the user's progress records (time in minutes, percentages rounded)."""
    agg = UserProgress.objects.filter(user=user).aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(completed=True)),
        seconds=Sum("time_spent"),
        avg=Avg("progress_percentage"),
    )
    return {
        "total_lessons": agg["total"] or 0,
        "completed_lessons": agg["completed"] or 0,
        "total_study_minutes": round((agg["seconds"] or 0) / 60),
        "average_progress": round(agg["avg"] or 0),
    }


def admin_stats(recent: int = 5) -> Dict:
    total = UserProgress.objects.count()
    completed = UserProgress.objects.filter(completed=True).count()
    return {
        "total_lessons": Lesson.objects.count(),
        "active_students": User.objects.filter(role=User.ROLE_USER).count(),
        "completion_rate": round(completed * 100 / total) if total else 0,
        "recent_lessons": list(Lesson.objects.order_by("-updated_at", "-id")[:recent]),
    }


# ---- Completion activity -------------------------------------------------

def to_aware_utc(x: str | dt.datetime) -> dt.datetime:
    """Parse an ISO string or datetime into a tz-aware datetime in UTC."""
    if isinstance(x, str):
        d = parse_datetime(x)
        if d is None:
            raise ValueError("from/to must be ISO-8601")
    elif isinstance(x, dt.datetime):
        d = x
    else:
        raise TypeError("datetime must be str or datetime")
    if timezone.is_naive(d):
        d = timezone.make_aware(d, dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)


def _floor_local(d: dt.datetime, granularity: str, tz: dt.tzinfo) -> dt.datetime:
    """Floor a datetime to the start of its local day or month."""
    ld = d.astimezone(tz)
    if granularity == "day":
        ld = ld.replace(hour=0, minute=0, second=0, microsecond=0)
    elif granularity == "month":
        ld = ld.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        raise ValueError("granularity must be day|month")
    # Re-localize so the offset matches the floored wall time (DST).
    return tz.localize(ld.replace(tzinfo=None)) if hasattr(tz, "localize") else ld


def _step_local(d: dt.datetime, granularity: str, tz: dt.tzinfo) -> dt.datetime:
    naive = d.replace(tzinfo=None)
    if granularity == "day":
        naive = naive + dt.timedelta(days=1)
    elif granularity == "month":
        year = naive.year + (1 if naive.month == 12 else 0)
        month = 1 if naive.month == 12 else naive.month + 1
        naive = naive.replace(year=year, month=month, day=1)
    else:
        raise ValueError("granularity must be day|month")
    return tz.localize(naive) if hasattr(tz, "localize") else naive.replace(tzinfo=tz)


def _iter_bucket_starts(
    from_utc: dt.datetime, to_utc: dt.datetime, granularity: str, tz: dt.tzinfo
) -> List[dt.datetime]:
    """
    Local bucket starts covering [from, to); a bucket is included if it starts before `to`.
    Raises ValueError when the window needs more than SUMMARY_MAX_BUCKETS[granularity] buckets.
    """
    limit = SUMMARY_MAX_BUCKETS[granularity]
    cur = _floor_local(from_utc, granularity, tz)
    out: List[dt.datetime] = []
    while cur < to_utc:
        if len(out) == limit:
            raise ValueError(f"window too large: at most {limit} {granularity} buckets")
        out.append(cur)
        try:
            cur = _step_local(cur, granularity, tz)
        except OverflowError:
            # No later bucket is representable.
            break
    return out


def completion_activity(
    user,
    dt_from: str | dt.datetime,
    dt_to: str | dt.datetime,
    *,
    granularity: str = "day",
    tz: str = "UTC",
) -> List[Dict]:
    """
    Count the user's lesson completions per local day or month over [from, to).

    Rules:
      1) A completion belongs to the bucket of its completed_at in the given timezone.
      2) Every bucket in the window is returned, empty ones with a count of 0.
    """
    if granularity not in ("day", "month"):
        raise ValueError("granularity must be day|month")

    tzinfo = pytz.timezone(tz)
    f_utc = to_aware_utc(dt_from)
    t_utc = to_aware_utc(dt_to)
    if f_utc >= t_utc:
        return []

    starts = _iter_bucket_starts(f_utc, t_utc, granularity, tzinfo)
    idx: Dict[dt.datetime, int] = {bs: i for i, bs in enumerate(starts)}
    counts = [0 for _ in starts]
    minutes = [0 for _ in starts]

    qs = UserProgress.objects.filter(
        user=user,
        completed=True,
        completed_at__gte=f_utc,
        completed_at__lt=t_utc,
    ).only("completed_at", "time_spent")

    for rec in qs:
        key = _floor_local(rec.completed_at, granularity, tzinfo)
        if key not in idx:
            continue
        bi = idx[key]
        counts[bi] += 1
        minutes[bi] += (rec.time_spent or 0) // 60

    return [
        {
            "bucket_start": bs.isoformat(),  # local timezone ISO
            "completed": counts[i],
            "study_minutes": minutes[i],
        }
        for i, bs in enumerate(starts)
    ]
