"""Controller that owns one watch session. Primary embed point."""

import asyncio
import logging
import os

from autocompile_core.context import WatchContext
from autocompile_core.models import Options
from autocompile_core.notifier import CompileNotifier, NoOpNotifier
from autocompile_core.transforms import TransformRegistry, default_transforms
from autocompile_core.watchers import WatchBackend

logger = logging.getLogger(__name__)


class AutocompileController:
    """Starts discovery, keeps watchers alive, and shuts everything down.

    Stable methods: start(), run(), stop().
    """

    def __init__(
        self,
        options: Options | None = None,
        transforms: TransformRegistry | None = None,
        notifier: CompileNotifier | None = None,
        backend: WatchBackend | None = None,
    ):
        """Initialize controller.

        Args:
            options: Option snapshot (defaults to Options())
            transforms: Transformation registry (defaults to the built-ins)
            notifier: Status line handler (defaults to NoOpNotifier - silent)
            backend: Watch backend (defaults to a watchdog ObserverHub on start)
        """
        self.options = options or Options()
        self.transforms = transforms or default_transforms(self.options.require)
        self.notifier = notifier or NoOpNotifier()
        self._backend = backend
        self.context: WatchContext | None = None

    def start(self, paths: list[str]) -> WatchContext:
        """Register every top-level path and begin discovering it.

        Idempotent: a second call returns the running context.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        if self.context is not None:
            return self.context

        loop = asyncio.get_running_loop()
        backend = self._backend
        if backend is None:
            from autocompile_core.observer import ObserverHub

            backend = ObserverHub(loop)
        self._backend = backend

        ctx = WatchContext(self.options, self.transforms, backend, self.notifier, loop)
        self.context = ctx
        backend.start()

        sources = [os.path.normpath(path) for path in paths]
        for source in sources:
            ctx.registry.register_path(source)
        for source in sources:
            ctx.spawn(ctx.walker.walk(source, top_level=True, base=source))

        logger.info(f"Watching {len(sources)} path(s)")
        logger.debug(f"Compiling extensions: {', '.join(self.transforms.extensions)}")
        return ctx

    async def run(self, paths: list[str]) -> None:
        """Watch until a fatal error occurs or the task is cancelled.

        Raises:
            SourceNotFoundError: If a top-level path does not exist
            OSError: On any filesystem failure other than a vanished file
        """
        ctx = self.start(paths)
        try:
            await ctx.fatal
        finally:
            self.stop()

    def stop(self) -> None:
        """Close every watcher and stop the backend."""
        if self.context is None:
            return
        self.context.close()
        self.context = None
        if self._backend is not None:
            try:
                self._backend.stop()
            except Exception as e:
                logger.error(f"Failed to stop watch backend: {e}")
        logger.debug("Controller stopped")
