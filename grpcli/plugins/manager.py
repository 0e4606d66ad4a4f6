"""
PluginManager - name-keyed registry of job handlers.

The manager maps Job.type to a Plugin and dispatches jobs to it:
validate first, then execute. It is the only object shared between the
concurrent job tasks of a wave, so registry access follows a
reader/writer discipline:
- reads (get_plugin, list_plugins, dispatch) may proceed concurrently
- writes (register_plugin, load_plugins) exclude readers and other writers

Discovery:
- Entry points in the "grp.plugins" group
- *.py modules in plugin_dir exporting a module-level `plugin` instance
  or a Plugin subclass named `PLUGIN`

A candidate that fails to load is logged and skipped; the rest still load.
"""

import importlib.util
import inspect
import logging
import threading
from contextlib import contextmanager
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from grpcli.errors import (
    PluginAlreadyRegisteredError,
    PluginError,
    PluginExecutionError,
    PluginLoadError,
    PluginNotFoundError,
    PluginValidationError,
)
from grpcli.plugins.base import NoOpPlugin, Plugin, PluginResult
from grpcli.schemas import ExecutionContext

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "grp.plugins"
DEFAULT_PLUGIN_DIR = "./plugins"


class _ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _coerce_plugin(candidate: Any, source: str) -> Plugin:
    """Turn a discovered object (instance, class or factory) into a Plugin."""
    if inspect.isclass(candidate) and issubclass(candidate, Plugin):
        candidate = candidate()
    elif callable(candidate) and not isinstance(candidate, Plugin):
        candidate = candidate()

    if not isinstance(candidate, Plugin):
        raise PluginLoadError(
            f"{source} does not provide a Plugin (got {type(candidate).__name__})"
        )
    return candidate


class PluginManager:
    """
    Registry and dispatcher for plugins.

    Usage:
        manager = PluginManager.create_default()
        manager.register_plugin(MyPlugin())

        result = manager.execute_plugin(ctx, "kubernetes", {"namespace": "default", ...})
    """

    def __init__(self, plugin_dir: Union[str, Path, None] = DEFAULT_PLUGIN_DIR) -> None:
        self.plugin_dir = Path(plugin_dir) if plugin_dir is not None else None
        self._registry: dict[str, Plugin] = {}
        self._lock = _ReadWriteLock()

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def register_plugin(self, plugin: Plugin) -> None:
        """
        Register a plugin under its declared name.

        Raises:
            PluginAlreadyRegisteredError: If the name is taken. The existing
                registration is left in place.
        """
        with self._lock.write():
            self._register_locked(plugin)

    def _register_locked(self, plugin: Plugin) -> None:
        name = plugin.name
        if name in self._registry:
            raise PluginAlreadyRegisteredError(name)
        self._registry[name] = plugin

    def get_plugin(self, name: str) -> Plugin:
        """
        Get a plugin by name.

        Raises:
            PluginNotFoundError: If no plugin is registered under that name
        """
        with self._lock.read():
            plugin = self._registry.get(name)
        if plugin is None:
            raise PluginNotFoundError(name)
        return plugin

    def has_plugin(self, name: str) -> bool:
        with self._lock.read():
            return name in self._registry

    def list_plugins(self) -> list[Plugin]:
        """Snapshot of the registered plugins. Order is not meaningful."""
        with self._lock.read():
            return list(self._registry.values())

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def execute_plugin(
        self,
        ctx: ExecutionContext,
        job_type: str,
        config: dict[str, Any],
    ) -> PluginResult:
        """
        Validate and execute a job with the plugin registered for its type.

        Args:
            ctx: Execution context (stage already set)
            job_type: Plugin name
            config: Job configuration, already variable-resolved

        Returns:
            The plugin's result

        Raises:
            PluginNotFoundError: No plugin for job_type
            PluginValidationError: The plugin rejected the configuration
            PluginExecutionError: The plugin raised during execution
        """
        plugin = self.get_plugin(job_type)

        try:
            plugin.validate(ctx, config)
        except Exception as e:
            raise PluginValidationError(f"invalid configuration: {e}") from e

        try:
            result = plugin.execute(ctx, config)
        except Exception as e:
            raise PluginExecutionError(f"plugin {job_type} execution failed: {e}") from e

        if result is None:
            raise PluginExecutionError(f"plugin {job_type} returned no result")
        if not isinstance(result, PluginResult):
            raise PluginExecutionError(
                f"plugin {job_type} returned {type(result).__name__}, expected PluginResult"
            )
        return result

    def rollback_plugin(self, ctx: ExecutionContext, name: str) -> None:
        """
        Ask a plugin to undo the effects of this run.

        Raises:
            PluginNotFoundError: No plugin registered under name
            PluginError: The plugin's rollback raised
        """
        plugin = self.get_plugin(name)
        try:
            plugin.rollback(ctx, ctx.execution_id)
        except Exception as e:
            raise PluginError(f"plugin {name} rollback failed: {e}") from e

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def load_plugins(self, include_entry_points: bool = True) -> list[str]:
        """
        Discover and register plugins.

        Entry points are loaded first, then the plugin directory. A
        candidate that fails to load or clashes with a registered name is
        logged and skipped.

        Args:
            include_entry_points: Also scan the "grp.plugins" entry point group

        Returns:
            Names of the plugins registered by this call

        Raises:
            PluginLoadError: If plugin_dir is set but does not exist. Entry
                point plugins are registered before this is raised.
        """
        missing_dir = self.plugin_dir is not None and not self.plugin_dir.is_dir()

        loaded: list[str] = []
        with self._lock.write():
            if include_entry_points:
                for ep in entry_points().select(group=ENTRY_POINT_GROUP):
                    self._try_register(
                        lambda ep=ep: _coerce_plugin(ep.load(), f"entry point {ep.name}"),
                        f"entry point {ep.name}",
                        loaded,
                    )

            if self.plugin_dir is not None and not missing_dir:
                for path in sorted(self.plugin_dir.glob("*.py")):
                    if path.name.startswith("_"):
                        continue
                    self._try_register(
                        lambda path=path: self._load_plugin_file(path),
                        str(path),
                        loaded,
                    )

        logger.info(
            f"Loaded {len(loaded)} plugin(s)",
            extra={"event": "plugins_loaded", "metadata": {"plugins": loaded}},
        )
        if missing_dir:
            raise PluginLoadError(f"plugin directory does not exist: {self.plugin_dir}")
        return loaded

    def _try_register(self, factory, source: str, loaded: list[str]) -> None:
        try:
            plugin = factory()
            self._register_locked(plugin)
        except PluginError as e:
            logger.warning(f"Failed to load plugin {source}: {e}")
            return
        except Exception as e:
            logger.warning(f"Failed to load plugin {source}: {e}", exc_info=True)
            return
        loaded.append(plugin.name)
        logger.debug(f"Registered plugin {plugin.name} from {source}")

    def _load_plugin_file(self, path: Path) -> Plugin:
        module_name = f"grp_plugin_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"cannot import {path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise PluginLoadError(f"failed to import {path}: {e}") from e

        candidate = getattr(module, "plugin", None)
        if candidate is None:
            candidate = getattr(module, "PLUGIN", None)
        if candidate is None:
            raise PluginLoadError(f"{path} does not export 'plugin' or 'PLUGIN'")
        return _coerce_plugin(candidate, str(path))

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create_default(cls, plugin_dir: Optional[Union[str, Path]] = None) -> "PluginManager":
        """
        Create a manager with the built-in plugins registered.

        Built-ins: noop, kubernetes.

        Args:
            plugin_dir: Directory scanned by load_plugins(); None disables it
        """
        from grpcli.plugins.kubernetes import KubernetesPlugin

        manager = cls(plugin_dir=plugin_dir)
        manager.register_plugin(NoOpPlugin())
        manager.register_plugin(KubernetesPlugin())
        return manager

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._registry)
