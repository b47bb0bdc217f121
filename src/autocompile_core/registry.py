"""Source registry - the single shared ledger of watched source paths."""

import logging

from autocompile_core.paths import is_within

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Ordered list of source paths with a parallel content-slot list.

    ``sources[i]`` and ``source_code[i]`` always describe the same entry.
    Order is a flattened depth-first listing of the watched trees; join mode
    concatenates content in this order.
    """

    def __init__(self):
        self.sources: list[str] = []
        self.source_code: list[bytes | None] = []
        self.non_sources: set[str] = set()

    def __len__(self) -> int:
        return len(self.sources)

    def __contains__(self, path: str) -> bool:
        return path in self.sources

    def register_path(self, path: str) -> None:
        """Append ``path`` with an empty content slot."""
        self.sources.append(path)
        self.source_code.append(None)
        logger.debug(f"Registered {path}")

    def rename_path(self, old: str, new: str) -> None:
        """Replace an entry's path in place, keeping its position."""
        index = self.sources.index(old)
        self.sources[index] = new
        self.source_code[index] = None

    def is_known(self, path: str) -> bool:
        """Return True if ``path`` or anything beneath it is registered."""
        return any(is_within(source, path) for source in self.sources)

    def expand_directory(self, dir_path: str, children: list[str]) -> list[str]:
        """Replace the directory entry with its children, in order.

        The directory's index is looked up at splice time. Children that are
        already known are skipped so re-walking a tree never duplicates
        entries. If the directory is no longer registered the new children
        are appended.

        Returns:
            The children actually inserted
        """
        new = [child for child in children if not self.is_known(child)]
        try:
            index = self.sources.index(dir_path)
        except ValueError:
            for child in new:
                self.register_path(child)
            return new
        self.sources[index:index + 1] = new
        self.source_code[index:index + 1] = [None] * len(new)
        logger.debug(f"Expanded {dir_path} into {len(new)} entries")
        return new

    def set_content(self, path: str, content: bytes) -> bool:
        """Store the latest content snapshot; False if ``path`` is gone."""
        try:
            index = self.sources.index(path)
        except ValueError:
            return False
        self.source_code[index] = content
        return True

    def remove_source(self, path: str) -> bool:
        """Remove the entry for ``path``; False if it was not registered."""
        try:
            index = self.sources.index(path)
        except ValueError:
            return False
        del self.sources[index]
        del self.source_code[index]
        logger.debug(f"Removed {path}")
        return True

    def remove_subtree(self, directory: str) -> list[str]:
        """Remove every entry at or beneath ``directory``.

        Returns:
            The removed paths, in registry order
        """
        removed = [source for source in self.sources if is_within(source, directory)]
        for source in removed:
            self.remove_source(source)
        return removed

    def mark_non_source(self, path: str) -> None:
        """Remember ``path`` as having no transformation. Idempotent."""
        self.non_sources.add(path)

    def is_non_source(self, path: str) -> bool:
        return path in self.non_sources

    def all_loaded(self) -> bool:
        """True when every entry has a content snapshot."""
        return all(code is not None for code in self.source_code)

    def joined_content(self) -> bytes:
        """Concatenate every content slot in registry order."""
        return b"\n".join(code for code in self.source_code if code is not None)
