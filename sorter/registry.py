"""
Registry of images already used for training, for duplicate-name detection while sorting
"""
import os
import logging
from collections import defaultdict
from dataclasses import dataclass

from utils import config

logger = logging.getLogger('known_images')


@dataclass(frozen=True)
class KnownImage:
    name: str
    size: int
    parent: str


class KnownImageRegistry:
    """
    Known training images keyed by file name.

    Two files are taken to be the same image when they share file name, byte
    size and parent folder name. No content hash is involved, so a match is
    only probable.
    """
    def __init__(self, entries=()):
        self._by_name = defaultdict(list)
        for entry in entries:
            self._by_name[entry.name].append(entry)

    @classmethod
    def from_paths(cls, paths):
        """
        Build a registry from image paths, reading each file size once.

        Paths that no longer exist are skipped with a warning.
        """
        entries = []
        for path in paths:
            try:
                size = os.path.getsize(path)
            except FileNotFoundError:
                logger.warning(f"Known image not found, ignoring: {path}")
                continue
            entries.append(KnownImage(
                name=os.path.basename(path),
                size=size,
                parent=os.path.basename(os.path.dirname(path)),
            ))
        return cls(entries)

    def __len__(self):
        return sum(len(entries) for entries in self._by_name.values())

    def matches(self, name):
        return list(self._by_name.get(name, ()))

    def resolve_dest_name(self, dest_path, size):
        """
        Return the path a sorted copy should be written to.

        When a known image has the same file name and size and sits in a folder
        named like the destination folder, the file name gets the ``known_``
        prefix. Otherwise dest_path is returned unchanged.

        Args:
            dest_path (str): Candidate destination path (label folder / file name)
            size (int): Byte size of the source file

        Returns:
            str: Destination path to copy to
        """
        folder, name = os.path.split(dest_path)
        parent = os.path.basename(folder)
        for entry in self.matches(name):
            if entry.size == size and entry.parent == parent:
                return os.path.join(folder, config.KNOWN_PREFIX + name)
        return dest_path
