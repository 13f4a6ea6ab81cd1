# curriculum/tests/test_api.py
import re

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils.dateparse import parse_datetime

from curriculum.models import Class, Lesson, Main
from curriculum.services import get_lessons, search_lessons


def _main(c, title="Gospels", **extra):
    r = c.post("/api/mains", dict({"title": title}, **extra), format="json")
    assert r.status_code == 201
    return r.json()


def _class(c, main_id, title="Gospel of John", **extra):
    r = c.post("/api/classes", dict({"main_id": main_id, "title": title}, **extra), format="json")
    assert r.status_code == 201
    return r.json()


def _lesson(c, main_id, title="The Good Shepherd", **extra):
    payload = {"main_id": main_id, "title": title, "content": "<p>Lesson body.</p>"}
    payload.update(extra)
    r = c.post("/api/lessons", payload, format="json")
    assert r.status_code == 201, r.json()
    return r.json()


# ---- Hierarchy -------------------------------------------------------------

@pytest.mark.django_db
def test_admin_builds_hierarchy_with_defaults(admin_client, admin_user):
    main = _main(admin_client, description="Matthew to John")
    assert main["order"] == 0
    assert main["created_by"] == admin_user.pk
    assert main["created_at"] and main["updated_at"]

    klass = _class(admin_client, main["id"], order=2)
    lesson = _lesson(admin_client, main["id"], class_id=klass["id"], bible_reference="John 10:1-18")
    assert lesson["status"] == "draft"
    assert lesson["views"] == 0
    assert lesson["order"] == 0
    assert lesson["images"] == []
    assert lesson["class_id"] == klass["id"]

    r = admin_client.get(f"/api/mains/{main['id']}/classes")
    assert [c["id"] for c in r.json()["items"]] == [klass["id"]]


@pytest.mark.django_db
def test_mains_are_listed_by_order(admin_client):
    _main(admin_client, "Epistles", order=2)
    _main(admin_client, "Torah", order=0)
    _main(admin_client, "Prophets", order=1)
    titles = [m["title"] for m in admin_client.get("/api/mains").json()["items"]]
    assert titles == ["Torah", "Prophets", "Epistles"]


@pytest.mark.django_db
def test_student_cannot_write_curriculum(admin_client, student_client):
    main = _main(admin_client)
    assert student_client.post("/api/mains", {"title": "X"}, format="json").status_code == 403
    assert student_client.post("/api/classes", {"main_id": main["id"], "title": "X"}, format="json").status_code == 403
    assert student_client.post("/api/lessons", {"main_id": main["id"], "title": "X"}, format="json").status_code == 403
    assert student_client.delete(f"/api/mains/{main['id']}").status_code == 403
    assert Main.objects.count() == 1


@pytest.mark.django_db
def test_blank_title_rejected(admin_client):
    assert admin_client.post("/api/mains", {"title": "   "}, format="json").status_code == 400


@pytest.mark.django_db
def test_lesson_class_must_belong_to_main(admin_client):
    m1 = _main(admin_client, "Old Testament")
    m2 = _main(admin_client, "New Testament")
    k2 = _class(admin_client, m2["id"])
    r = admin_client.post(
        "/api/lessons",
        {"main_id": m1["id"], "class_id": k2["id"], "title": "Mismatch"},
        format="json",
    )
    assert r.status_code == 400


@pytest.mark.django_db
def test_update_merges_fields_and_refreshes_updated_at(admin_client):
    main = _main(admin_client)
    lesson = _lesson(admin_client, main["id"])
    r = admin_client.patch(f"/api/lessons/{lesson['id']}", {"status": "published"}, format="json")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "published"
    assert body["title"] == lesson["title"]
    assert parse_datetime(body["updated_at"]) >= parse_datetime(lesson["updated_at"])


@pytest.mark.django_db
def test_update_missing_entity_404(admin_client):
    assert admin_client.patch("/api/mains/999", {"title": "x"}, format="json").status_code == 404
    assert admin_client.patch("/api/lessons/999", {"title": "x"}, format="json").status_code == 404


@pytest.mark.django_db
def test_deleting_main_keeps_classes_and_lessons(admin_client):
    main = _main(admin_client)
    klass = _class(admin_client, main["id"])
    lesson = _lesson(admin_client, main["id"], class_id=klass["id"])

    r = admin_client.delete(f"/api/mains/{main['id']}")
    assert r.status_code == 409
    assert r.json()["blocking"] == {"classes": 1, "lessons": 1}
    assert Main.objects.filter(pk=main["id"]).exists()
    assert Class.objects.filter(pk=klass["id"]).exists()
    assert Lesson.objects.filter(pk=lesson["id"]).exists()

    r = admin_client.delete(f"/api/classes/{klass['id']}")
    assert r.status_code == 409
    assert Lesson.objects.filter(pk=lesson["id"]).exists()


@pytest.mark.django_db
def test_childless_parents_can_be_deleted(admin_client):
    main = _main(admin_client)
    klass = _class(admin_client, main["id"])
    lesson = _lesson(admin_client, main["id"], class_id=klass["id"])

    assert admin_client.delete(f"/api/lessons/{lesson['id']}").status_code == 204
    assert admin_client.delete(f"/api/classes/{klass['id']}").status_code == 204
    assert admin_client.delete(f"/api/mains/{main['id']}").status_code == 204
    assert Main.objects.count() == 0


# ---- Visibility & search ---------------------------------------------------

@pytest.mark.django_db
def test_students_only_see_published_lessons(admin_client, student_client):
    main = _main(admin_client)
    draft = _lesson(admin_client, main["id"], "Draft lesson")
    published = _lesson(admin_client, main["id"], "Published lesson", status="published")

    items = student_client.get("/api/lessons").json()["items"]
    assert [i["id"] for i in items] == [published["id"]]
    assert student_client.get(f"/api/lessons/{draft['id']}").status_code == 404
    assert student_client.get(f"/api/lessons/{published['id']}").status_code == 200

    # Asking for drafts explicitly does not help.
    items = student_client.get("/api/lessons?status=draft").json()["items"]
    assert [i["id"] for i in items] == [published["id"]]

    # Admins see everything.
    assert admin_client.get("/api/lessons").json()["count"] == 2


@pytest.mark.django_db
def test_published_lessons_are_ordered_by_order(admin_client, student_client):
    main = _main(admin_client)
    second = _lesson(admin_client, main["id"], "Second", status="published", order=2)
    first = _lesson(admin_client, main["id"], "First", status="published", order=1)
    _lesson(admin_client, main["id"], "Hidden", status="archived", order=0)
    items = student_client.get("/api/lessons/published").json()["items"]
    assert [i["id"] for i in items] == [first["id"], second["id"]]


@pytest.mark.django_db
def test_search_matches_any_text_field_case_insensitively(admin_client):
    main = _main(admin_client)
    by_title = _lesson(admin_client, main["id"], "Shepherd Psalm", status="published")
    by_content = _lesson(admin_client, main["id"], "Comfort", content="<p>The LORD is my SHEPHERD</p>")
    by_ref = _lesson(admin_client, main["id"], "Sheep", bible_reference="Shepherd 1:1")
    by_cat = _lesson(admin_client, main["id"], "Pastoral", category="shepherding")
    _lesson(admin_client, main["id"], "Unrelated", content="<p>Creation</p>")

    items = admin_client.get("/api/lessons?query=shepherd").json()["items"]
    assert {i["id"] for i in items} == {by_title["id"], by_content["id"], by_ref["id"], by_cat["id"]}

    # Text and filters must both match.
    items = admin_client.get("/api/lessons?query=shepherd&status=published").json()["items"]
    assert [i["id"] for i in items] == [by_title["id"]]


@pytest.mark.django_db
def test_filters_are_equality_matches(admin_client, admin_user):
    m1 = _main(admin_client, "A")
    m2 = _main(admin_client, "B")
    k1 = _class(admin_client, m1["id"])
    l1 = _lesson(admin_client, m1["id"], class_id=k1["id"], difficulty="beginner", category="prayer")
    l2 = _lesson(admin_client, m2["id"], difficulty="advanced", category="prayer")

    def ids(qs):
        return {i["id"] for i in admin_client.get(f"/api/lessons?{qs}").json()["items"]}

    assert ids(f"main_id={m1['id']}") == {l1["id"]}
    assert ids(f"class_id={k1['id']}") == {l1["id"]}
    assert ids("difficulty=advanced") == {l2["id"]}
    assert ids("category=prayer") == {l1["id"], l2["id"]}
    assert ids(f"author={admin_user.pk}") == {l1["id"], l2["id"]}


@pytest.mark.django_db
def test_invalid_filter_values_rejected(admin_client):
    assert admin_client.get("/api/lessons?status=deleted").status_code == 400
    assert admin_client.get("/api/lessons?main_id=abc").status_code == 400


@pytest.mark.django_db
def test_empty_search_equals_unfiltered_listing(admin_client):
    main = _main(admin_client)
    for i in range(3):
        _lesson(admin_client, main["id"], f"Lesson {i}", status="published" if i else "draft")
    assert search_lessons("", {}) == list(get_lessons({}))
    assert search_lessons("", {"status": "published"}) == list(get_lessons({"status": "published"}))


@pytest.mark.django_db
def test_search_reports_when_scan_limit_cuts_results(admin_client, settings):
    settings.LESSON_SEARCH_LIMIT = 2
    main = _main(admin_client)
    oldest = _lesson(admin_client, main["id"], "Psalm 1 Study")
    _lesson(admin_client, main["id"], "Psalm 2 Study")
    newest = _lesson(admin_client, main["id"], "Psalm 3 Study")

    data = admin_client.get("/api/lessons?query=psalm").json()
    assert data["truncated"] is True
    assert data["scan_limit"] == 2
    assert oldest["id"] not in {i["id"] for i in data["items"]}
    assert data["items"][0]["id"] == newest["id"]

    data = admin_client.get(f"/api/lessons?main_id={main['id']}&query=psalm%201").json()
    assert data["truncated"] is True
    assert data["count"] == 0

    settings.LESSON_SEARCH_LIMIT = 3
    data = admin_client.get("/api/lessons?query=psalm%201").json()
    assert data["truncated"] is False
    assert [i["id"] for i in data["items"]] == [oldest["id"]]


@pytest.mark.django_db
def test_lesson_list_cache_invalidated_on_write(admin_client):
    main = _main(admin_client)
    assert admin_client.get("/api/lessons").json()["count"] == 0
    _lesson(admin_client, main["id"])
    assert admin_client.get("/api/lessons").json()["count"] == 1
    assert len(admin_client.get("/api/mains").json()["items"]) == 1
    _main(admin_client, "Second")
    assert len(admin_client.get("/api/mains").json()["items"]) == 2


@pytest.mark.django_db
def test_lesson_list_cache_dropped_again_on_commit(admin_client, django_capture_on_commit_callbacks):
    main = _main(admin_client)
    assert admin_client.get("/api/lessons").json()["count"] == 0

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        lesson = _lesson(admin_client, main["id"], title="Before commit")
        # A reader landing before the commit caches a listing under the new version.
        assert admin_client.get("/api/lessons").json()["count"] == 1
        Lesson.objects.filter(pk=lesson["id"]).update(title="Committed title")
        assert admin_client.get("/api/lessons").json()["items"][0]["title"] == "Before commit"

    assert len(callbacks) == 1
    assert admin_client.get("/api/lessons").json()["items"][0]["title"] == "Committed title"


# ---- Views counter ---------------------------------------------------------

@pytest.mark.django_db
def test_view_counter_increments_by_n(admin_client, student_client):
    main = _main(admin_client)
    lesson = _lesson(admin_client, main["id"], status="published")
    last = 0
    for _ in range(7):
        r = student_client.post(f"/api/lessons/{lesson['id']}/view")
        assert r.status_code == 200
        assert r.json()["views"] > last
        last = r.json()["views"]
    assert Lesson.objects.get(pk=lesson["id"]).views == 7


@pytest.mark.django_db
def test_view_counter_hidden_for_drafts(admin_client, student_client):
    main = _main(admin_client)
    lesson = _lesson(admin_client, main["id"])
    assert student_client.post(f"/api/lessons/{lesson['id']}/view").status_code == 404
    assert admin_client.post("/api/lessons/999/view").status_code == 404


# ---- Rich text -------------------------------------------------------------

@pytest.mark.django_db
def test_lesson_content_is_sanitized_on_write(admin_client):
    main = _main(admin_client)
    lesson = _lesson(
        admin_client,
        main["id"],
        content='<p onclick="steal()">Hi<script>alert(1)</script></p><a href="javascript:x()">x</a>',
    )
    assert lesson["content"] == "<p>Hi</p><a>x</a>"


@pytest.mark.django_db
def test_scripture_quote_endpoint(admin_client, student_client):
    r = admin_client.post("/api/editor/scripture-quote", {"selection": "Jesus wept."}, format="json")
    assert r.status_code == 200
    assert r.json()["html"].startswith("<blockquote class=")
    assert "Jesus wept." in r.json()["html"]
    assert student_client.post("/api/editor/scripture-quote", {}, format="json").status_code == 403


# ---- Uploads ---------------------------------------------------------------

def _image(name, size=10, content_type="image/png"):
    return SimpleUploadedFile(name, b"x" * size, content_type=content_type)


@pytest.mark.django_db
def test_upload_batch_skips_rejected_files_and_continues(admin_client, admin_user, settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    settings.UPLOAD_MAX_BYTES = 100
    r = admin_client.post(
        "/api/uploads",
        {"files": [
            _image("first.png"),
            _image("notes.txt", content_type="text/plain"),
            _image("huge.png", size=101),
            _image("last.jpg", content_type="image/jpeg"),
        ]},
        format="multipart",
    )
    assert r.status_code == 201
    body = r.json()
    assert len(body["urls"]) == 2
    pattern = rf"^/media/lessons/{admin_user.pk}/\d+_(first\.png|last\.jpg)$"
    assert all(re.match(pattern, u) for u in body["urls"])
    assert [s["name"] for s in body["skipped"]] == ["notes.txt", "huge.png"]
    assert "type" in body["skipped"][0]["reason"]
    assert "large" in body["skipped"][1]["reason"]
    assert len(list((tmp_path / "lessons" / str(admin_user.pk)).iterdir())) == 2


@pytest.mark.django_db
def test_upload_rejects_oversized_batches_and_students(admin_client, student_client, settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    files = [_image(f"{i}.png") for i in range(6)]
    assert admin_client.post("/api/uploads", {"files": files}, format="multipart").status_code == 400
    r = student_client.post("/api/uploads", {"files": [_image("a.png")]}, format="multipart")
    assert r.status_code == 403


@pytest.mark.django_db
def test_lesson_holds_at_most_five_images(admin_client):
    main = _main(admin_client)
    r = admin_client.post(
        "/api/lessons",
        {"main_id": main["id"], "title": "Pictures", "images": [f"/media/{i}.png" for i in range(6)]},
        format="json",
    )
    assert r.status_code == 400
