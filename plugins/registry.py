# plugins/registry.py
"""Adapter registry: maps node type names to node adapters."""

import importlib
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType
from typing import Dict, Iterable, List, Optional, Type, Union

import structlog
import yaml

from plugins.base import AdapterInfo, NodeAdapter

logger = structlog.get_logger(__name__)

BUILTIN_PLUGIN_DIR = Path(__file__).parent


class AdapterRegistry:
    """Registry of node adapters, populated from plugin directories.

    A plugin is a directory holding a ``manifest.yaml`` and a Python package
    whose module namespace exposes :class:`NodeAdapter` subclasses. Unknown
    type names resolve to ``None``.
    """

    def __init__(self):
        self._adapters: Dict[str, Type[NodeAdapter]] = {}
        self._instances: Dict[str, NodeAdapter] = {}
        self._plugins: Dict[str, Optional[str]] = {}  # adapter name -> plugin name
        self._plugin_errors: Dict[str, str] = {}

    def register(self, adapter_cls: Type[NodeAdapter], plugin: Optional[str] = None) -> None:
        """Register an adapter class under its ``name``."""
        if not adapter_cls.name:
            raise ValueError(f"Adapter {adapter_cls.__name__} has no name")
        if adapter_cls.name in self._adapters and self._adapters[adapter_cls.name] is not adapter_cls:
            logger.warning(
                "adapter_replaced",
                adapter=adapter_cls.name,
                previous=self._adapters[adapter_cls.name].__name__
            )
        self._adapters[adapter_cls.name] = adapter_cls
        self._instances.pop(adapter_cls.name, None)
        self._plugins[adapter_cls.name] = plugin

    def get(self, name: str) -> Optional[NodeAdapter]:
        """Adapter instance for a node type, or ``None`` when unknown."""
        adapter_cls = self._adapters.get(name)
        if adapter_cls is None:
            return None
        if name not in self._instances:
            self._instances[name] = adapter_cls()
        return self._instances[name]

    def __contains__(self, name: str) -> bool:
        return name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def names(self) -> List[str]:
        return sorted(self._adapters)

    def list_adapters(self) -> List[AdapterInfo]:
        return [
            self._adapters[name].info(plugin=self._plugins.get(name))
            for name in self.names()
        ]

    def get_plugin_errors(self) -> Dict[str, str]:
        """Get dictionary of plugin load errors."""
        return self._plugin_errors.copy()

    def load_plugins(self, plugin_dirs: Iterable[Union[str, Path]]) -> int:
        """Load every plugin found directly below the given directories."""
        loaded = 0
        for plugin_dir in plugin_dirs:
            plugin_dir = Path(plugin_dir)
            if not plugin_dir.is_dir():
                logger.warning("plugin_dir_missing", path=str(plugin_dir))
                continue
            for path in sorted(plugin_dir.iterdir()):
                if not (path.is_dir() and (path / "manifest.yaml").exists()):
                    continue
                try:
                    loaded += self._load_plugin(path)
                except Exception as e:
                    self._plugin_errors[path.name] = str(e)
                    logger.warning("plugin_load_failed", plugin=path.name, error=str(e))

        logger.debug("plugins_loaded", adapters=loaded, errors=len(self._plugin_errors))
        return loaded

    def _load_plugin(self, plugin_path: Path) -> int:
        """Load a single plugin; returns the number of adapters registered."""
        try:
            with open(plugin_path / "manifest.yaml", "r") as f:
                manifest = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Invalid manifest in {plugin_path}: {e}") from e

        plugin_name = manifest.get("name", plugin_path.name)

        missing = self._check_dependencies(manifest.get("dependencies", []))
        if missing:
            raise ImportError(f"Missing dependencies for {plugin_name}: {', '.join(missing)}")

        module = self._import_plugin_module(plugin_path, plugin_name)
        wanted = manifest.get("nodes")

        count = 0
        for adapter_cls in _adapter_classes(module):
            if wanted is not None and adapter_cls.name not in wanted:
                continue
            self.register(adapter_cls, plugin=plugin_name)
            count += 1

        logger.debug("plugin_loaded", plugin=plugin_name, adapters=count)
        return count

    @staticmethod
    def _import_plugin_module(plugin_path: Path, plugin_name: str) -> ModuleType:
        if plugin_path.parent.resolve() == BUILTIN_PLUGIN_DIR.resolve():
            return importlib.import_module(f"plugins.{plugin_path.name}")

        module_name = f"workflow_plugins.{plugin_name}"
        if module_name in sys.modules:
            return sys.modules[module_name]

        spec = importlib.util.spec_from_file_location(
            module_name,
            plugin_path / "__init__.py",
            submodule_search_locations=[str(plugin_path)]
        )
        if not spec or not spec.loader:
            raise ImportError(f"Could not load plugin package from {plugin_path}")

        module = importlib.util.module_from_spec(spec)
        # Add to sys.modules to enable relative imports
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            del sys.modules[module_name]
            raise
        return module

    @staticmethod
    def _check_dependencies(dependencies: List[str]) -> List[str]:
        """Module names from the manifest that cannot be imported."""
        missing = []
        for dep in dependencies:
            module_name = dep.split(">=")[0].split("==")[0].strip().replace("-", "_")
            try:
                found = importlib.util.find_spec(module_name) is not None
            except (ImportError, ValueError):
                found = False
            if not found:
                missing.append(dep)
        return missing


def _adapter_classes(module: ModuleType) -> List[Type[NodeAdapter]]:
    return [
        attr for _, attr in inspect.getmembers(module, inspect.isclass)
        if issubclass(attr, NodeAdapter) and attr is not NodeAdapter and attr.name
    ]


def create_registry(plugin_dirs: Optional[Iterable[Union[str, Path]]] = None) -> AdapterRegistry:
    """Registry with the builtin plugins plus any extra plugin directories."""
    registry = AdapterRegistry()
    registry.load_plugins([BUILTIN_PLUGIN_DIR, *(plugin_dirs or [])])
    return registry
