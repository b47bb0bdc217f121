"""Compilation driver - routes settled content to its transformation."""

import asyncio
import logging
import os
from typing import TYPE_CHECKING

from autocompile_core.models import TransformResult
from autocompile_core.paths import output_path
from autocompile_core.transforms import Transformation

if TYPE_CHECKING:
    from autocompile_core.context import WatchContext

logger = logging.getLogger(__name__)

JOIN_SETTLE = 0.1
"""Seconds without a new completion before the joined output is compiled."""


class CompilationDriver:
    """Resolves output path and transformation, then invokes it.

    In join mode per-file compilation is replaced by a single compilation of
    every registered source concatenated in registry order, deferred until
    every source has been read and re-armed on each new read.
    """

    def __init__(self, ctx: "WatchContext"):
        self.ctx = ctx
        self._join_timer: asyncio.TimerHandle | None = None

    def resolve(self, path: str) -> Transformation | None:
        """Transformation for ``path``'s extension, else the default one."""
        transforms = self.ctx.transforms
        extension = os.path.splitext(path)[1]
        return transforms.lookup(extension) or transforms.lookup(self.ctx.options.default_extension)

    async def compile(self, path: str, content: bytes, base: str) -> TransformResult | None:
        """Compile one source, or stage it for the joined output.

        Args:
            path: Source path
            content: Source bytes just read
            base: Root the output directory structure is mirrored from

        Returns:
            TransformResult, or None when nothing ran
        """
        if self.ctx.options.join:
            if self.ctx.registry.set_content(path, content):
                self.schedule_join()
            return None

        transformation = self.resolve(path)
        if transformation is None:
            logger.warning(f"No transformation for {path}")
            return None

        target = output_path(path, base, self.ctx.options.output_dir)
        await asyncio.to_thread(os.makedirs, os.path.dirname(target) or ".", exist_ok=True)
        result = await transformation.invoke(content, path, target)
        if result.ok:
            self.ctx.notifier.compiled(path)
        return result

    async def remove_output(self, path: str, base: str) -> None:
        """Delete the artifact compiled from ``path``, if any."""
        transformation = self.resolve(path)
        if transformation is None:
            return
        target = output_path(path, base, self.ctx.options.output_dir) + transformation.suffix
        try:
            await asyncio.to_thread(os.remove, target)
            logger.debug(f"Deleted {target}")
        except FileNotFoundError:
            pass

    def schedule_join(self) -> None:
        """(Re)arm the join timer once every source has content."""
        registry = self.ctx.registry
        if not self.ctx.options.join or not len(registry) or not registry.all_loaded():
            return
        self.cancel_join()
        self._join_timer = self.ctx.loop.call_later(JOIN_SETTLE, self._fire_join)

    def cancel_join(self) -> None:
        if self._join_timer is not None:
            self._join_timer.cancel()
            self._join_timer = None

    def _fire_join(self) -> None:
        self._join_timer = None
        self.ctx.spawn(self.compile_join())

    async def compile_join(self) -> TransformResult | None:
        """Compile every source's content as one synthetic unit."""
        name = self.ctx.options.join
        registry = self.ctx.registry
        if not name or not len(registry) or not registry.all_loaded():
            return None

        transformation = self.resolve(name)
        if transformation is None:
            logger.warning(f"No transformation for joined output {name}")
            return None

        target = output_path(name, ".", self.ctx.options.output_dir)
        await asyncio.to_thread(os.makedirs, os.path.dirname(target) or ".", exist_ok=True)
        result = await transformation.invoke(registry.joined_content(), name, target)
        if result.ok:
            self.ctx.notifier.compiled(name)
        return result
