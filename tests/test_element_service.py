"""Tests for element enumeration, batch rename and single-element edits."""

import threading

import pytest

from tagfolio import encoding
from tagfolio.element_service import ElementService
from tagfolio.errors import (
    BadEncodingError,
    CollectionNotFoundError,
    DuplicateTagError,
    ElementConflictError,
    ElementNotFoundError,
)
from tagfolio.forms import RequestErrors
from tagfolio.types import CollectionRef, ElementType

PHOTOS = CollectionRef("photos")


@pytest.fixture
def fs(memory_fs):
    memory_fs.add("photos/a #beach.jpg", b"a")
    memory_fs.add("photos/b #beach #sun.jpg", b"b")
    memory_fs.add("photos/c.png", b"c")
    memory_fs.add("photos/todo #home.md", b"- milk\n")
    memory_fs.add("photos/palette #warm.colors", b"#ff0000")
    memory_fs.add("photos/.tags.json", b"[]")
    memory_fs.add("photos/.DS_Store", b"")
    memory_fs.add("photos/scan.pdf", b"")
    memory_fs.add("photos/nested/deep #beach.jpg", b"")
    return memory_fs


@pytest.fixture
def service(fs):
    return ElementService(fs, max_workers=4)


def _token(basename):
    return encoding.encode(basename)


class TestList:
    def test_lists_supported_elements_sorted(self, service):
        names = [e.basename for e in service.list(PHOTOS)]
        assert names == [
            "a #beach.jpg",
            "b #beach #sun.jpg",
            "c.png",
            "palette #warm.colors",
            "todo #home.md",
        ]

    def test_element_fields(self, service):
        element = service.list(PHOTOS, tag="sun")[0]
        assert element.type == ElementType.IMAGE
        assert element.name == "b"
        assert element.tags == ("beach", "sun")
        assert element.size == 1
        assert element.collection == PHOTOS.encoded
        assert element.proxy_url == f"/proxy/{PHOTOS.encoded}/{_token('b #beach #sun.jpg')}"
        assert element.updated.tzinfo is not None

    def test_filter_by_tag(self, service):
        assert [e.name for e in service.list(PHOTOS, tag="beach")] == ["a", "b"]

    def test_filter_by_tag_as_spelled_in_basename(self, fs, service):
        fs.add("photos/x #Summer_Trip.jpg")
        assert [e.name for e in service.list(PHOTOS, tag="Summer_Trip")] == ["x"]
        assert [e.name for e in service.list(PHOTOS, tag="Summer Trip")] == ["x"]

    def test_filter_by_impossible_tag(self, service):
        assert service.list(PHOTOS, tag="a.b") == []

    def test_missing_collection(self, service):
        with pytest.raises(CollectionNotFoundError):
            service.list(CollectionRef("nowhere"))

    def test_registry_with_custom_name_is_skipped(self, fs):
        fs.add("photos/tags.json", b"[]")
        service = ElementService(fs, registry_filename="tags.json")
        assert "tags.json" not in [e.basename for e in service.list(PHOTOS)]

    def test_to_dict(self, service):
        d = service.get(PHOTOS, _token("a #beach.jpg")).to_dict()
        assert d["type"] == "image"
        assert d["tags"] == ["beach"]
        assert d["encoded_basename"] == _token("a #beach.jpg")


class TestGet:
    def test_get(self, service):
        assert service.get(PHOTOS, _token("c.png")).name == "c"

    def test_missing(self, service):
        with pytest.raises(ElementNotFoundError):
            service.get(PHOTOS, _token("nope.png"))

    def test_bad_token(self, service):
        with pytest.raises(BadEncodingError):
            service.get(PHOTOS, "not base64!")


class TestBatchRename:
    def test_renames_matching_elements(self, fs, service):
        result = service.batch_rename(
            PHOTOS,
            lambda e: e.has_tag("beach"),
            lambda f: f.remove_tag("beach").add_tag("coast"),
        )
        assert [(r.old, r.new) for r in result.renamed] == [
            ("a #beach.jpg", "a #coast.jpg"),
            ("b #beach #sun.jpg", "b #coast #sun.jpg"),
        ]
        assert result.ok
        assert result.matched == 2
        assert "photos/nested/deep #beach.jpg" in fs.files

    def test_no_match(self, fs, service):
        result = service.batch_rename(PHOTOS, lambda e: False, lambda f: None)
        assert result.matched == 0
        assert fs.renames == []

    def test_unchanged_elements_reported(self, fs, service):
        result = service.batch_rename(PHOTOS, lambda e: e.has_tag("sun"), lambda f: f.remove_tag("absent"))
        assert result.unchanged == ["b #beach #sun.jpg"]
        assert fs.renames == []

    def test_failure_does_not_stop_batch(self, fs, service):
        fs.fail_renames.add("a #beach.jpg")
        result = service.batch_rename(
            PHOTOS,
            lambda e: e.has_tag("beach"),
            lambda f: f.remove_tag("beach"),
        )
        assert [r.new for r in result.renamed] == ["b #sun.jpg"]
        assert len(result.failed) == 1
        failure = result.failed[0]
        assert failure.basename == "a #beach.jpg"
        assert isinstance(failure.error, PermissionError)
        assert failure.to_dict()["error"] == "PermissionError"
        assert not result.ok
        assert "photos/a #beach.jpg" in fs.files

    def test_mutator_errors_collected(self, fs, service):
        result = service.batch_rename(
            PHOTOS,
            lambda e: e.has_tag("beach"),
            lambda f: f.add_tag("sun"),
        )
        assert [r.old for r in result.renamed] == ["a #beach.jpg"]
        assert isinstance(result.failed[0].error, DuplicateTagError)

    def test_existing_target_is_a_conflict(self, fs, service):
        fs.add("photos/a #coast.jpg", b"keep me")
        result = service.batch_rename(
            PHOTOS,
            lambda e: e.basename == "a #beach.jpg",
            lambda f: f.remove_tag("beach").add_tag("coast"),
        )
        assert isinstance(result.failed[0].error, ElementConflictError)
        assert fs.files["photos/a #coast.jpg"] == b"keep me"

    def test_two_elements_claiming_one_name(self, fs, service):
        fs.add("photos/a #beach #coast.jpg", b"other")

        def retag(f):
            f.remove_tag("beach")
            if not f.has_tag("coast"):
                f.add_tag("coast")

        result = service.batch_rename(PHOTOS, lambda e: e.name == "a", retag)
        assert len(result.renamed) == 1
        assert len(result.failed) == 1
        assert isinstance(result.failed[0].error, ElementConflictError)
        assert sorted(fs.files[p] for p in fs.files if p.startswith("photos/a ")) == [b"a", b"other"]

    def test_renames_run_on_worker_threads(self, fs):
        seen = set()
        service = ElementService(fs, max_workers=3)

        def mutate(f):
            seen.add(threading.current_thread().name)
            f.add_tag("x")

        result = service.batch_rename(PHOTOS, lambda e: True, mutate)
        assert result.matched == 5
        assert all(name.startswith("tagfolio-rename") for name in seen)

    def test_to_dict(self, fs, service):
        fs.fail_renames.add("c.png")
        result = service.batch_rename(PHOTOS, lambda e: e.name in ("a", "c"), lambda f: f.add_tag("new"))
        d = result.to_dict()
        assert d["renamed"] == [{"old": "a #beach.jpg", "new": "a #beach #new.jpg"}]
        assert d["failed"][0]["basename"] == "c.png"


class TestUpdate:
    def test_rename(self, fs, service):
        element = service.update(PHOTOS, _token("a #beach.jpg"), {"name": "sunrise"})
        assert element.basename == "sunrise #beach.jpg"
        assert fs.files["photos/sunrise #beach.jpg"] == b"a"

    def test_replace_tags(self, service):
        element = service.update(PHOTOS, _token("a #beach.jpg"), {"tags": ["Night_Sky", "moon"]})
        assert element.basename == "a #Night_Sky #moon.jpg"
        assert element.tags == ("Night Sky", "moon")

    def test_invalid_request_does_not_touch_file(self, fs, service):
        result = service.update(PHOTOS, _token("a #beach.jpg"), {"tags": ["bad-tag"], "name": "x #y"})
        assert isinstance(result, RequestErrors)
        assert set(result.errors) == {"name", "tags"}
        assert fs.renames == []

    def test_unknown_field(self, service):
        result = service.update(PHOTOS, _token("a #beach.jpg"), {"colour": "red"})
        assert isinstance(result, RequestErrors)
        assert "colour" in result.errors

    def test_empty_name_and_tags(self, fs, service):
        result = service.update(PHOTOS, _token("c.png"), {"name": ""})
        assert isinstance(result, RequestErrors)
        assert "name" in result.errors
        assert "photos/c.png" in fs.files

    def test_add_and_remove_tag(self, service):
        element = service.add_tag(PHOTOS, _token("c.png"), "Summer_Trip")
        assert element.basename == "c #Summer_Trip.png"
        element = service.remove_tag(PHOTOS, element.encoded_basename, "Summer Trip")
        assert element.basename == "c.png"

    def test_remove_absent_tag(self, fs, service):
        element = service.remove_tag(PHOTOS, _token("c.png"), "nothing")
        assert element.basename == "c.png"
        assert fs.renames == []

    def test_add_existing_tag(self, service):
        with pytest.raises(DuplicateTagError):
            service.add_tag(PHOTOS, _token("a #beach.jpg"), "beach")


class TestContent:
    def test_note_content(self, service):
        assert service.get_content(PHOTOS, _token("todo #home.md")) == "- milk\n"

    @pytest.mark.parametrize("basename", ["c.png", "palette #warm.colors"])
    def test_no_content_for_images_and_colors(self, service, basename):
        assert service.get_content(PHOTOS, _token(basename)) is None

    def test_set_note_content(self, fs, service):
        element = service.set_content(PHOTOS, _token("todo #home.md"), "- eggs\n")
        assert fs.files["photos/todo #home.md"] == b"- eggs\n"
        assert element.size == len(b"- eggs\n")

    def test_set_image_content_ignored(self, fs, service):
        service.set_content(PHOTOS, _token("c.png"), "text")
        assert fs.files["photos/c.png"] == b"c"
