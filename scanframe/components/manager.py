"""Base registry for pluggable components (modules, plugins, reports)."""

from __future__ import annotations

import re
from typing import Any, Callable, ClassVar, Iterable, Iterator, Optional, TypeVar

from scanframe.core.errors import ComponentNotFoundError
from scanframe.core.logger import LoggerMixin

C = TypeVar("C", bound="Component")


class Component:
    """
    Base class of every pluggable component.

    ``info`` holds the component's metadata: ``name``, ``description``,
    ``author`` (string or list), ``version`` and any component-specific keys.
    """

    shortname: ClassVar[str] = ""
    info: ClassVar[dict[str, Any]] = {}

    @classmethod
    def path(cls) -> str:
        """Dotted import path of the component class."""
        return f"{cls.__module__}.{cls.__qualname__}"

    def __str__(self) -> str:
        return self.shortname or type(self).__name__


class ComponentManager(LoggerMixin):
    """
    Registry of available components plus the set currently loaded.

    Components become *available* by registering their class with
    :meth:`register`; a scan only uses the *loaded* ones. Each subclass keeps
    its own registry.
    """

    kind: ClassVar[str] = "component"
    _registry: ClassVar[dict[str, type[Component]]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._registry = {}

    def __init__(self) -> None:
        self._loaded: dict[str, type[Component]] = {}

    @classmethod
    def register(cls, name: Optional[str] = None) -> Callable[[type[C]], type[C]]:
        """
        Class decorator making a component available under ``name``.

        Args:
            name: Short name, defaults to the lower-cased class name
        """
        def decorator(component: type[C]) -> type[C]:
            shortname = name or component.__name__.lower()
            component.shortname = shortname
            cls._registry[shortname] = component
            return component

        return decorator

    @classmethod
    def available(cls) -> list[str]:
        """Short names of every registered component."""
        return sorted(cls._registry)

    def name_to_path(self, name: str) -> str:
        """Import path of the component registered under ``name``."""
        return self._lookup(name).path()

    def _lookup(self, name: str) -> type[Component]:
        try:
            return self._registry[name]
        except KeyError:
            raise ComponentNotFoundError(self.kind, name) from None

    def load(self, names: Iterable[str]) -> list[str]:
        """
        Load components by short name; ``*`` loads every available one.

        Args:
            names: Short names to load

        Returns:
            The short names that were loaded

        Raises:
            ComponentNotFoundError: If a name matches no registered component
        """
        loaded = []
        for name in names:
            targets = self.available() if name == "*" else [name]
            for target in targets:
                self._loaded[target] = self._lookup(target)
                loaded.append(target)

        if loaded:
            self.logger.debug(f"Loaded {self.kind}s", names=loaded)
        return loaded

    @property
    def loaded(self) -> list[str]:
        """Short names of the loaded components, in load order."""
        return list(self._loaded)

    def keys(self) -> list[str]:
        return self.loaded

    def values(self) -> list[type[Component]]:
        return list(self._loaded.values())

    def info(self, name: str) -> dict[str, Any]:
        """Metadata of the component registered under ``name``."""
        return dict(self._lookup(name).info)

    def list_info(self, filters: Iterable[str] = ()) -> list[dict[str, Any]]:
        """
        Metadata of every available component, with normalised fields.

        Args:
            filters: Regular expressions which must all match a component's
                import path for it to be listed
        """
        regexps = [re.compile(f) for f in filters]

        listed = []
        for name in self.available():
            path = self.name_to_path(name)
            if not all(r.search(path) for r in regexps):
                continue

            info = self.info(name)
            author = info.get("author", [])
            authors = [author] if isinstance(author, str) else list(author)
            info.update(
                shortname=name,
                author=[a.strip() for a in authors],
                path=path,
            )
            listed.append(info)
        return listed

    @property
    def empty(self) -> bool:
        """Whether no component is loaded."""
        return not self._loaded

    def clear(self) -> None:
        """Unload every component."""
        self._loaded.clear()

    def __getitem__(self, name: str) -> type[Component]:
        """Loaded component class, loading it first if needed."""
        if name not in self._loaded:
            self.load([name])
        return self._loaded[name]

    def __contains__(self, name: object) -> bool:
        return name in self._loaded

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._loaded))

    def __len__(self) -> int:
        return len(self._loaded)
