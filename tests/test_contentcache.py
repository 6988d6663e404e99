import io
import json
import os
import threading

import pytest

from bucketfs.contentcache import (
    CacheFileObjectMetadata,
    CacheObject,
    CacheObjectKey,
    ContentCache,
    match_pattern,
)

NUM_THREADS = 100
TEST_GENERATION = 10002022
TEST_GENERATION_OLD = 10002020
TEST_META_GENERATION = 1
TEST_META_GENERATION_OLD = 2


def _metadata(name="foobar"):
    return CacheFileObjectMetadata(
        cache_file_name_on_disk=name,
        bucket_name="foo",
        object_name="baz",
        generation=TEST_GENERATION,
        meta_generation=TEST_META_GENERATION,
    )


def _run_threads(target, count=NUM_THREADS):
    threads = [threading.Thread(target=target, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_validate_generation():
    obj = CacheObject(metadata=_metadata())
    assert obj.validate_generation(TEST_GENERATION, TEST_META_GENERATION) is True


def test_validate_generation_negative():
    obj = CacheObject(metadata=_metadata())
    assert obj.validate_generation(TEST_GENERATION_OLD, TEST_META_GENERATION_OLD) is False
    assert obj.validate_generation(TEST_GENERATION_OLD, TEST_META_GENERATION) is False
    assert obj.validate_generation(TEST_GENERATION, TEST_META_GENERATION_OLD) is False


def test_validate_generation_without_metadata():
    assert CacheObject().validate_generation(0, 0) is False


def test_read_write_metadata_checkpoint_file(tmp_path):
    cache = ContentCache(str(tmp_path))
    metadata = _metadata(str(tmp_path / "anon"))
    base = str(tmp_path / metadata.object_name)
    metadata_file = cache.write_metadata_checkpoint_file(base, metadata)
    assert metadata_file == base + ".json"
    with open(metadata_file, encoding="utf-8") as f:
        data = json.load(f)
    assert data["BucketName"] == "foo"
    assert data["ObjectName"] == "baz"
    assert data["Generation"] == TEST_GENERATION
    assert data["MetaGeneration"] == TEST_META_GENERATION
    assert CacheFileObjectMetadata.from_dict(data) == metadata


def test_add_or_replace_concurrent(tmp_path):
    cache = ContentCache(str(tmp_path))
    key = CacheObjectKey("foo", "baz")
    errors = []

    def worker(_):
        try:
            cache.add_or_replace(key, 1000, 1, None)
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    _run_threads(worker)
    assert errors == []
    assert cache.size() == 1
    names = sorted(os.listdir(tmp_path))
    assert len(names) == 2
    obj = cache.get(key)
    assert obj.cache_file == str(tmp_path / [n for n in names if not n.endswith(".json")][0])


def test_get_concurrent(tmp_path):
    cache = ContentCache(str(tmp_path))
    key = CacheObjectKey("foo", "baz")
    stored = cache.add_or_replace(key, 1000, 1, None)
    seen = [None] * NUM_THREADS

    def worker(i):
        obj = cache.get(key)
        seen[i] = (obj.cache_file, obj.metadata, obj.metadata_file_name)

    _run_threads(worker)
    expected = (stored.cache_file, stored.metadata, stored.metadata_file_name)
    assert seen == [expected] * NUM_THREADS


def test_get_missing(tmp_path):
    assert ContentCache(str(tmp_path)).get(CacheObjectKey("a", "b")) is None


def test_remove_concurrent(tmp_path):
    cache = ContentCache(str(tmp_path))
    for i in range(1, NUM_THREADS + 1):
        cache.add_or_replace(CacheObjectKey("foo", f"baz{i}"), 1000, 1, None)
    assert cache.size() == NUM_THREADS

    def worker(i):
        cache.remove(CacheObjectKey("foo", f"baz{i + 1}"))

    _run_threads(worker)
    assert cache.size() == 0
    assert os.listdir(tmp_path) == []


def test_contents_written(tmp_path):
    cache = ContentCache(str(tmp_path))
    reader = io.BytesIO(b"taco")
    obj = cache.add_or_replace(CacheObjectKey("b", "o"), 5, 2, reader)
    with open(obj.cache_file, "rb") as f:
        assert f.read() == b"taco"
    assert reader.closed
    assert obj.metadata.generation == 5
    assert obj.metadata.meta_generation == 2


def test_replace_destroys_old_files(tmp_path):
    cache = ContentCache(str(tmp_path))
    key = CacheObjectKey("b", "o")
    old = cache.add_or_replace(key, 1, 1, io.BytesIO(b"old"))
    new = cache.add_or_replace(key, 2, 1, io.BytesIO(b"new"))
    assert not os.path.exists(old.cache_file)
    assert not os.path.exists(old.metadata_file_name)
    assert os.path.exists(new.cache_file)
    assert cache.get(key).metadata.generation == 2


def test_destroy_removes_files(tmp_path):
    cache = ContentCache(str(tmp_path))
    obj = cache.add_or_replace(CacheObjectKey("b", "o"), 1, 1, io.BytesIO(b"x"))
    obj.destroy()
    assert os.listdir(tmp_path) == []


def test_recover_cache(tmp_path):
    first = ContentCache(str(tmp_path))
    key_a = CacheObjectKey("foo", "a")
    key_b = CacheObjectKey("foo", "b")
    stored_a = first.add_or_replace(key_a, 7, 3, io.BytesIO(b"burrito"))
    first.add_or_replace(key_b, 8, 4, io.BytesIO(b"enchilada"))

    second = ContentCache(str(tmp_path))
    second.recover_cache()
    assert second.size() == 2
    recovered = second.get(key_a)
    assert recovered.metadata == stored_a.metadata
    assert recovered.cache_file == stored_a.cache_file
    assert recovered.validate_generation(7, 3) is True
    with open(recovered.cache_file, "rb") as f:
        assert f.read() == b"burrito"


def test_recover_cache_skips_corrupt_and_missing(tmp_path):
    (tmp_path / "gcsfusecache123.json").write_text("{not json")
    missing = CacheFileObjectMetadata(str(tmp_path / "gone"), "foo", "bar", 1, 1)
    (tmp_path / "gcsfusecache456.json").write_text(json.dumps(missing.to_dict()))
    (tmp_path / "unrelated.json").write_text("{}")
    cache = ContentCache(str(tmp_path))
    cache.recover_cache()
    assert cache.size() == 0


def test_recover_cache_missing_directory(tmp_path):
    cache = ContentCache(str(tmp_path / "absent"))
    with pytest.raises(OSError):
        cache.recover_cache()


@pytest.mark.parametrize(
    "name, expected",
    [
        ("gcsfusecache123.json", True),
        ("gcsfusecache0.json", True),
        ("gcsfusecache.json", False),
        ("gcsfusecacheabc.json", False),
        ("gcsfusecache123", False),
        ("other.json", False),
    ],
)
def test_match_pattern(name, expected):
    assert match_pattern(name) is expected