"""Tests for the Tagfolio facade and its operations log."""

import logging

from tagfolio import Tagfolio, collection_token
from tagfolio.config import LibraryConfig
from tagfolio.encoding import encode
from tagfolio.errors import log_exception
from tagfolio.logging_config import OPS_LOG_FILENAME


def test_creates_config(tmp_path):
    with Tagfolio(tmp_path) as tf:
        assert (tmp_path / "tagfolio.toml").exists()
        assert tf.root == tmp_path.resolve()
        assert tf.config.rename_workers == 4


def test_ops_log_records_tag_rename(library, holidays):
    library.tags.update(holidays, encode("beach"), {"name": "coast"})
    text = (library.root / OPS_LOG_FILENAME).read_text()
    assert "Renamed tag 'beach' -> 'coast'" in text
    assert "Renamed element 'a #beach.jpg' -> 'a #coast.jpg'" in text


def test_close_removes_handler(tmp_path):
    tf = Tagfolio(tmp_path)
    handler = tf._ops_log_handler
    assert handler in logging.getLogger("tagfolio").handlers
    tf.close()
    assert handler not in logging.getLogger("tagfolio").handlers
    tf.close()


def test_ops_log_disabled(tmp_path):
    with Tagfolio(config=LibraryConfig(path=tmp_path, ops_log=False)):
        pass
    assert not (tmp_path / OPS_LOG_FILENAME).exists()


def test_collection_lookup(library):
    assert library.collection("/holidays/").encoded == collection_token("holidays")


def test_elements_are_listed_through_facade(library):
    names = [e.name for e in library.elements.list(library.collection("holidays"))]
    assert names == ["a", "b", "c", "notes"]


def test_log_exception_writes_traceback(tmp_path):
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        path = log_exception(e, context="test", root=tmp_path)
    text = path.read_text()
    assert path == tmp_path / "tagfolio-errors.log"
    assert "RuntimeError: boom" in text
    assert "test" in text
