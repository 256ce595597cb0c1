"""
Ticket Bot Extensions

Add-on modules that contribute step types.

Discovery:
1. installed distributions advertising the `ticketbot.extensions`
   entry-point group
2. `*.py` modules and packages inside the extensions directory

Either way the module exposes `extension`: an Extension subclass or an
instance of one. Extensions are enabled in dependency order and their
step types are merged into the registry at that moment, so resolving a
step type never has to search extension modules.
"""

import importlib.util
import logging
import sys
from importlib.metadata import entry_points
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel, Field

from ..errors import ExtensionError
from .registry import StepTypeRegistry
from .steps import StepType

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "ticketbot.extensions"


class ExtensionMeta(BaseModel):
    """
    Metadata every extension declares.

    `id` must be unique across installed extensions; `dependencies`
    lists ids that have to be enabled first.
    """
    id: str
    name: str
    description: str = ""
    version: str = "0.0.0"
    authors: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    url: Optional[str] = None


class Extension:
    """
    Base class for extensions.

    Step types listed in `step_types` are registered before `on_enable`
    runs; more can be registered from `on_enable` through
    `register_step_type`.
    """

    meta: ClassVar[ExtensionMeta]
    step_types: ClassVar[Sequence[Type[StepType]]] = ()

    def __init__(self):
        self.enabled = False
        self.registry: Optional[StepTypeRegistry] = None
        self.data_dir: Optional[Path] = None

    def on_enable(self, registry: StepTypeRegistry) -> None:
        pass

    def on_disable(self) -> None:
        pass

    def register_step_type(self, step_type: Type[StepType]) -> None:
        if self.registry is None:
            raise ExtensionError(f"{self} is not enabled")
        self.registry.register(step_type, owner=self.meta.id)

    def __repr__(self) -> str:
        return f"{type(self).__name__} (Extension {self.meta.id})"


class ExtensionLoader:
    """Finds, orders, enables and disables extensions."""

    def __init__(
        self,
        registry: StepTypeRegistry,
        directory: Optional[Path] = None,
        group: Optional[str] = ENTRY_POINT_GROUP
    ):
        self.registry = registry
        self.directory = Path(directory) if directory is not None else None
        self.group = group
        self._found: Dict[str, Extension] = {}
        self._enabled: List[Extension] = []

    @property
    def enabled(self) -> List[Extension]:
        return list(self._enabled)

    def get(self, extension_id: str) -> Optional[Extension]:
        return self._found.get(extension_id)

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def add(self, extension: Extension) -> None:
        """Make an extension known to the loader without importing anything."""
        meta = getattr(extension, "meta", None)
        if not isinstance(meta, ExtensionMeta):
            raise ExtensionError(f"{type(extension).__name__} declares no ExtensionMeta")
        if meta.id in self._found:
            raise ExtensionError(f"Extension {meta.id} is installed twice")
        self._found[meta.id] = extension

    def discover(self) -> List[Extension]:
        """Import every extension module; broken modules are logged and skipped."""
        if self.group:
            for entry_point in entry_points(group=self.group):
                try:
                    self.add(_coerce(entry_point.load(), entry_point.name))
                except Exception:
                    logger.exception("Could not load extension entry point %s", entry_point.name)

        if self.directory is not None and self.directory.is_dir():
            for path in sorted(self.directory.iterdir()):
                if path.name.startswith(("_", ".")):
                    continue
                if not (path.suffix == ".py" or (path / "__init__.py").is_file()):
                    continue
                try:
                    extension = _coerce(_import_path(path), path.name)
                    extension.data_dir = self.directory / extension.meta.id
                    self.add(extension)
                except Exception:
                    logger.exception("Could not load extension from %s", path)

        return list(self._found.values())

    # -------------------------------------------------------------------------
    # Enable / disable
    # -------------------------------------------------------------------------

    def load_all(self) -> List[Extension]:
        """Discover and enable everything. Returns the enabled extensions."""
        self.discover()
        for extension in self._ordered():
            try:
                self.enable(extension)
            except ExtensionError as e:
                logger.error("Skipping extension %s: %s", extension.meta.id, e)
        return self.enabled

    def enable(self, extension: Extension) -> None:
        if extension.enabled:
            return
        meta = extension.meta
        for dependency in meta.dependencies:
            required = self._found.get(dependency)
            if required is None or not required.enabled:
                raise ExtensionError(f"Dependency {dependency} of {meta.id} is not enabled")

        extension.registry = self.registry
        try:
            for step_type in extension.step_types:
                self.registry.register(step_type, owner=meta.id)
            extension.on_enable(self.registry)
        except Exception as e:
            self.registry.unregister_owner(meta.id)
            extension.registry = None
            raise ExtensionError(f"Extension {meta.id} failed to enable: {e}") from e

        extension.enabled = True
        self._enabled.append(extension)
        logger.info("Enabled extension %s v%s", meta.id, meta.version)

    def disable(self, extension: Extension) -> None:
        if not extension.enabled:
            return
        try:
            extension.on_disable()
        except Exception:
            logger.exception("Extension %s failed while disabling", extension.meta.id)
        self.registry.unregister_owner(extension.meta.id)
        extension.enabled = False
        extension.registry = None
        self._enabled.remove(extension)
        logger.info("Disabled extension %s", extension.meta.id)

    def disable_all(self) -> None:
        """Disable in reverse enable order, dependents first."""
        for extension in reversed(self.enabled):
            self.disable(extension)

    def _ordered(self) -> List[Extension]:
        """Dependencies before dependents. Cycles are logged and left out."""
        ordered: List[Extension] = []
        state: Dict[str, str] = {}

        def visit(extension_id: str, path: List[str]) -> None:
            if state.get(extension_id) == "done":
                return
            if state.get(extension_id) == "visiting":
                raise ExtensionError("Dependency cycle: " + " -> ".join(path + [extension_id]))
            extension = self._found.get(extension_id)
            if extension is None:
                return
            state[extension_id] = "visiting"
            for dependency in extension.meta.dependencies:
                visit(dependency, path + [extension_id])
            state[extension_id] = "done"
            ordered.append(extension)

        for extension_id in list(self._found):
            try:
                visit(extension_id, [])
            except ExtensionError as e:
                logger.error("%s", e)
                for key, value in list(state.items()):
                    if value == "visiting":
                        state[key] = "done"
        return ordered


# =============================================================================
# HELPERS
# =============================================================================

def _coerce(candidate, origin: str) -> Extension:
    """Accept a module, an Extension subclass or an Extension instance."""
    if hasattr(candidate, "extension") and not isinstance(candidate, (type, Extension)):
        candidate = candidate.extension
    if isinstance(candidate, type) and issubclass(candidate, Extension):
        candidate = candidate()
    if not isinstance(candidate, Extension):
        raise ExtensionError(f"{origin} does not provide an Extension")
    return candidate


def _import_path(path: Path):
    name = f"ticketbot_extension_{path.stem}"
    if path.is_dir():
        spec = importlib.util.spec_from_file_location(
            name, path / "__init__.py", submodule_search_locations=[str(path)]
        )
    else:
        spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ExtensionError(f"Can't import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(name, None)
        raise
    return module
