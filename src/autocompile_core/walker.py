"""Path walker - initial discovery of sources and watcher attachment."""

import asyncio
import logging
import os
import stat
from typing import TYPE_CHECKING

from autocompile_core.models import FileSnapshot
from autocompile_core.source_watchers import read_bytes

if TYPE_CHECKING:
    from autocompile_core.context import WatchContext

logger = logging.getLogger(__name__)


class SourceNotFoundError(FileNotFoundError):
    """A path named on the command line does not exist."""

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class Walker:
    """Discovers files and directories and attaches watchers to them."""

    def __init__(self, ctx: "WatchContext"):
        self.ctx = ctx

    async def walk(self, path: str, top_level: bool = False, base: str = ".", retried: bool = False) -> None:
        """Discover ``path`` and everything beneath it.

        Args:
            path: File or directory to discover (already registered)
            top_level: Whether ``path`` was named on the command line
            base: Root the output directory structure is mirrored from
            retried: Whether the default extension was already appended

        Raises:
            SourceNotFoundError: If a top-level path does not exist
        """
        registry = self.ctx.registry
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            await self._missing(path, top_level, base, retried)
            return

        if stat.S_ISDIR(st.st_mode):
            await self._walk_directory(path, top_level, base, (st.st_dev, st.st_ino))
        elif top_level or os.path.splitext(path)[1] in self.ctx.transforms:
            await self._walk_file(path, base, FileSnapshot.from_stat(st))
        else:
            registry.mark_non_source(path)
            self._drop(path)

    async def _missing(self, path: str, top_level: bool, base: str, retried: bool) -> None:
        registry = self.ctx.registry
        if not top_level:
            # Deleted between listing and stat
            self._drop(path)
            return

        extension = self.ctx.options.default_extension
        if not retried and os.path.splitext(path)[1] not in self.ctx.transforms:
            retry = path + extension
            if path in registry:
                registry.rename_path(path, retry)
            logger.debug(f"{path} not found, trying {retry}")
            await self.walk(retry, top_level=True, base=base, retried=True)
            return

        raise SourceNotFoundError(path)

    async def _walk_directory(self, path: str, top_level: bool, base: str, identity: tuple[int, int]) -> None:
        registry = self.ctx.registry
        walked = self.ctx.walked_dirs
        if identity in walked:
            # Symlink cycle or a directory named twice
            logger.debug(f"Skipping {path}, already walked as {walked[identity]}")
            if not top_level:
                registry.mark_non_source(path)
            self._drop(path)
            return
        walked[identity] = path

        try:
            self.ctx.watch_directory(path, base)
            names = await asyncio.to_thread(os.listdir, path)
        except FileNotFoundError:
            del walked[identity]
            if top_level:
                raise SourceNotFoundError(path) from None
            self._drop(path)
            return

        children = [os.path.join(path, name) for name in sorted(names)]
        children = [child for child in children if not registry.is_non_source(child)]
        added = registry.expand_directory(path, children)
        await asyncio.gather(*(self.walk(child, top_level=False, base=base) for child in added))

    async def _walk_file(self, path: str, base: str, snapshot: FileSnapshot) -> None:
        try:
            self.ctx.watch_file(path, base, snapshot)
            content = await asyncio.to_thread(read_bytes, path)
        except FileNotFoundError:
            # Deleted before we got to it
            watcher = self.ctx.watchers.get(path)
            if watcher is not None:
                watcher.close()
            self._drop(path)
            return
        if path not in self.ctx.registry:
            return
        await self.ctx.compiler.compile(path, content, base)

    def _drop(self, path: str) -> None:
        """Forget ``path``; in join mode the remaining sources may now be complete."""
        if self.ctx.registry.remove_source(path) and self.ctx.options.join:
            self.ctx.compiler.schedule_join()
