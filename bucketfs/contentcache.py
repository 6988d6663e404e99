"""Local on-disk storage of object contents, with metadata for recovery."""

from __future__ import annotations

import json
import logging
import os
import random
import re
import shutil
import tempfile
import threading
from contextlib import suppress
from dataclasses import dataclass
from typing import BinaryIO

CACHE_FILE_PREFIX = "gcsfusecache"
DEFAULT_RECOVERY_DIR = "/tmp"

_METADATA_PATTERN = re.compile(f"{CACHE_FILE_PREFIX}[0-9]+[.]json")
_COPY_CHUNK = 1 << 20

logger = logging.getLogger(__name__)


def match_pattern(file_name: str) -> bool:
    """Report whether ``file_name`` looks like a cache metadata file."""
    return _METADATA_PATTERN.search(file_name) is not None


@dataclass(frozen=True)
class CacheObjectKey:
    """Identifies an object by bucket name and object name."""

    bucket_name: str
    object_name: str


@dataclass
class CacheFileObjectMetadata:
    """What is persisted next to a cache file so that it can be recovered."""

    cache_file_name_on_disk: str
    bucket_name: str
    object_name: str
    generation: int
    meta_generation: int

    def to_dict(self) -> dict:
        """The JSON form of the metadata."""
        return {
            "CacheFileNameOnDisk": self.cache_file_name_on_disk,
            "BucketName": self.bucket_name,
            "ObjectName": self.object_name,
            "Generation": self.generation,
            "MetaGeneration": self.meta_generation,
        }

    @classmethod
    def from_dict(cls, data: object) -> CacheFileObjectMetadata:
        """Build metadata from its JSON form; missing fields take zero values."""
        if not isinstance(data, dict):
            raise ValueError("metadata must be a JSON object")
        return cls(
            cache_file_name_on_disk=str(data.get("CacheFileNameOnDisk", "")),
            bucket_name=str(data.get("BucketName", "")),
            object_name=str(data.get("ObjectName", "")),
            generation=int(data.get("Generation", 0)),
            meta_generation=int(data.get("MetaGeneration", 0)),
        )


@dataclass
class CacheObject:
    """A cache file on disk together with its metadata file."""

    metadata_file_name: str = ""
    metadata: CacheFileObjectMetadata | None = None
    cache_file: str | None = None

    def validate_generation(self, generation: int, meta_generation: int) -> bool:
        """Report whether the cached contents match the given generations."""
        if self.metadata is None:
            return False
        return (
            self.metadata.generation == generation
            and self.metadata.meta_generation == meta_generation
        )

    def destroy(self) -> None:
        """Remove the cache file and the metadata file from disk."""
        if self.cache_file is not None:
            with suppress(OSError):
                os.remove(self.cache_file)
        if self.metadata_file_name:
            with suppress(OSError):
                os.remove(self.metadata_file_name)


class ContentCache:
    """A directory on local disk holding object contents; thread-safe."""

    def __init__(self, temp_dir: str = "") -> None:
        self.temp_dir = temp_dir
        self._lock = threading.Lock()
        self._entries: dict[CacheObjectKey, CacheObject] = {}

    def write_metadata_checkpoint_file(
        self, cache_file_name: str, metadata: CacheFileObjectMetadata
    ) -> str:
        """Write ``metadata`` as JSON to ``<cache_file_name>.json``; return that name."""
        metadata_file_name = f"{cache_file_name}.json"
        text = json.dumps(metadata.to_dict(), indent=1)
        with open(metadata_file_name, "w", encoding="utf-8") as f:
            f.write(text)
        with suppress(OSError):
            os.chmod(metadata_file_name, 0o644)
        return metadata_file_name

    def _recover_entry(self, entry: os.DirEntry) -> None:
        if entry.is_dir() or not match_pattern(entry.name):
            return

        metadata_path = os.path.join(self.temp_dir, entry.name)
        try:
            with open(metadata_path, encoding="utf-8") as f:
                contents = f.read()
        except OSError as exc:
            logger.debug("Skip metadata file %s due to read error: %s", entry.name, exc)
            return

        try:
            metadata = CacheFileObjectMetadata.from_dict(json.loads(contents))
        except (ValueError, TypeError) as exc:
            logger.debug(
                "Skip metadata file %s due to file corruption: %s", entry.name, exc
            )
            return

        file_name = metadata.cache_file_name_on_disk
        if not os.path.isfile(file_name):
            logger.debug("Skip cache file %s: not found", file_name)
            return

        key = CacheObjectKey(metadata.bucket_name, metadata.object_name)
        self._entries[key] = CacheObject(
            metadata_file_name=metadata_path,
            metadata=metadata,
            cache_file=file_name,
        )

    def recover_cache(self) -> None:
        """Load entries persisted in the cache directory by an earlier run.

        Unreadable or corrupt metadata files are skipped. Raises OSError if
        the directory itself cannot be listed. Not to be called concurrently.
        """
        if not self.temp_dir:
            self.temp_dir = DEFAULT_RECOVERY_DIR
        logger.info("Recovering cache:")
        try:
            entries = list(os.scandir(self.temp_dir))
        except OSError as exc:
            raise OSError(exc.errno, f"recover cache: {exc}") from exc
        with self._lock:
            for entry in entries:
                self._recover_entry(entry)

    def _create_cache_file(self) -> tuple[int, str]:
        directory = self.temp_dir or tempfile.gettempdir()
        while True:
            name = f"{CACHE_FILE_PREFIX}{random.randrange(1 << 32)}"
            path = os.path.join(directory, name)
            try:
                fd = os.open(path, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                continue
            return fd, path

    def add_or_replace(
        self,
        key: CacheObjectKey,
        generation: int,
        meta_generation: int,
        reader: BinaryIO | None,
    ) -> CacheObject:
        """Store the contents of ``reader`` for ``key``, replacing any old entry."""
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                existing.destroy()

            fd, path = self._create_cache_file()
            try:
                with os.fdopen(fd, "wb") as f:
                    if reader is not None:
                        shutil.copyfileobj(reader, f, _COPY_CHUNK)
            except BaseException:
                with suppress(OSError):
                    os.remove(path)
                raise
            finally:
                if reader is not None and hasattr(reader, "close"):
                    reader.close()

            metadata = CacheFileObjectMetadata(
                cache_file_name_on_disk=path,
                bucket_name=key.bucket_name,
                object_name=key.object_name,
                generation=generation,
                meta_generation=meta_generation,
            )
            try:
                metadata_file_name = self.write_metadata_checkpoint_file(path, metadata)
            except OSError:
                with suppress(OSError):
                    os.remove(path)
                raise

            cache_object = CacheObject(
                metadata_file_name=metadata_file_name,
                metadata=metadata,
                cache_file=path,
            )
            self._entries[key] = cache_object
            return cache_object

    def get(self, key: CacheObjectKey) -> CacheObject | None:
        """Return the entry for ``key``, or None."""
        with self._lock:
            return self._entries.get(key)

    def remove(self, key: CacheObjectKey) -> None:
        """Destroy and forget the entry for ``key``, if any."""
        with self._lock:
            cache_object = self._entries.pop(key, None)
            if cache_object is not None:
                cache_object.destroy()

    def size(self) -> int:
        """Number of entries held."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()