import pytest

from slidegen.storage import make_staging_key


def test_staging_key_strips_directories_and_keeps_index():
    assert make_staging_key("job-1", "notes.md") == "job-1/notes.md"
    assert make_staging_key("job-1", "../../etc/notes.md", 3) == "job-1/03-notes.md"
    assert make_staging_key("job-1", "C:\\Users\\me\\deck.pdf") == "job-1/deck.pdf"


def test_blob_store_round_trip_and_cleanup(blob_store):
    key = blob_store.put("job-1/00-notes.md", b"hello")

    assert blob_store.get(key) == b"hello"
    blob_store.delete(key)
    assert list(blob_store.root.iterdir()) == []
    with pytest.raises(FileNotFoundError):
        blob_store.get(key)


def test_blob_store_rejects_escaping_keys(blob_store):
    with pytest.raises(ValueError, match="Invalid staging key"):
        blob_store.put("../outside.txt", b"x")
