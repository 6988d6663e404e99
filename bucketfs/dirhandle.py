"""Directory handles that serve listings of a directory inode."""

from __future__ import annotations

import enum
import errno
import os
import threading
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Protocol

ROOT_INODE_ID = 1

# U+000A is illegal in object names, so it cannot clash with a real name.
CONFLICTING_FILE_NAME_SUFFIX = "\n"


class DirentType(enum.IntEnum):
    """Kinds of directory entries."""

    UNKNOWN = 0
    FIFO = 1
    CHAR = 2
    DIRECTORY = 4
    BLOCK = 6
    FILE = 8
    LINK = 10
    SOCKET = 12


@dataclass
class Dirent:
    """One entry of a directory listing."""

    name: str
    type: DirentType = DirentType.UNKNOWN
    offset: int = 0
    inode: int = 0


class DirectoryInode(Protocol):
    """A directory that lists its entries in batches."""

    name: str
    lock: AbstractContextManager

    def read_entries(self, token: str) -> tuple[list[Dirent], str]:
        """Return a batch of entries and the token for the next, or ``""``."""
        ...


def fix_conflicting_names(entries: list[Dirent]) -> None:
    """Append the conflict suffix to file names that clash with a directory.

    Input must be sorted by name; each clashing pair must hold exactly one
    directory. The entries are changed in place.
    """
    if any(a.name > b.name for a, b in zip(entries, entries[1:])):
        raise ValueError("Expected sorted input")

    for prev, entry in zip(entries, entries[1:]):
        if entry.name != prev.name:
            continue

        entry_is_dir = entry.type == DirentType.DIRECTORY
        prev_is_dir = prev.type == DirentType.DIRECTORY
        if entry_is_dir == prev_is_dir:
            raise ValueError(
                f"Weird dirent type pair for name {entry.name!r}: "
                f"{entry.type.name}, {prev.type.name}"
            )

        if entry_is_dir:
            prev.name += CONFLICTING_FILE_NAME_SUFFIX
        else:
            entry.name += CONFLICTING_FILE_NAME_SUFFIX


def read_all_entries(directory: DirectoryInode) -> list[Dirent]:
    """Read every entry of ``directory``, sorted, de-conflicted and numbered.

    Offsets run from 1; every entry gets the same placeholder inode ID, one
    past the root's. The caller holds the directory's lock.
    """
    entries: list[Dirent] = []
    token = ""
    while True:
        batch, token = directory.read_entries(token)
        entries.extend(batch)
        if not token:
            break

    entries.sort(key=lambda e: e.name)
    fix_conflicting_names(entries)

    for offset, entry in enumerate(entries, start=1):
        entry.offset = offset
        entry.inode = ROOT_INODE_ID + 1
    return entries


class DirHandle:
    """State for reading one open directory."""

    def __init__(self, directory: DirectoryInode, implicit_dirs: bool) -> None:
        self.directory = directory
        self.implicit_dirs = implicit_dirs
        self.lock = threading.Lock()
        self.entries: list[Dirent] = []
        self.entries_valid = False

    def check_invariants(self) -> None:
        """Raise RuntimeError if the handle's state is inconsistent."""
        for prev, entry in zip(self.entries, self.entries[1:]):
            if entry.offset != prev.offset + 1:
                raise RuntimeError(
                    f"Unexpected offset sequence: {prev.offset}, {entry.offset}"
                )
        if not self.entries_valid and self.entries:
            raise RuntimeError("Unexpected non-empty entries slice")

    def _ensure_entries(self) -> None:
        with self.directory.lock:
            entries = read_all_entries(self.directory)
        self.entries = entries
        self.entries_valid = True

    def read_dir(self, offset: int) -> list[Dirent]:
        """Return the entries from ``offset`` on.

        Offset zero is taken to mean a fresh listing (first call or rewind),
        and the entries are read again. An offset past the end raises EINVAL.
        """
        if offset == 0:
            self.entries = []
            self.entries_valid = False

        if not self.entries_valid:
            self._ensure_entries()

        if offset > len(self.entries):
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))

        result = self.entries[offset:]
        self.check_invariants()
        return result