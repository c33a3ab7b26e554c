"""Run-scoped registry of generated type names."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from ..shared.errors import NamingConflictError
from .schema import TypeDefinition

logger = logging.getLogger(__name__)


@dataclass
class _Registry:
    by_name: dict[str, TypeDefinition] = field(default_factory=dict)
    by_ref: dict[str, str] = field(default_factory=dict)
    # names handed out for refs whose definition is still being resolved
    reserved: set[str] = field(default_factory=set)
    order: list[str] = field(default_factory=list)


class TypeTracker:
    """Maps reference paths to type names and type names to definitions.

    One tracker is created per generation run and passed explicitly to every
    component that needs to name or look up types.  ``with_default_suffixes``
    returns a view sharing the same registry with its own suffix list.
    """

    __slots__ = ("_registry", "_default_suffixes")

    def __init__(self, default_suffixes: Sequence[str] = (), *, _registry: _Registry | None = None) -> None:
        self._registry = _registry if _registry is not None else _Registry()
        self._default_suffixes: tuple[str, ...] = tuple(default_suffixes)

    def with_default_suffixes(self, suffixes: Sequence[str]) -> TypeTracker:
        return TypeTracker(suffixes, _registry=self._registry)

    @property
    def default_suffixes(self) -> tuple[str, ...]:
        return self._default_suffixes

    def register(self, definition: TypeDefinition, ref_path: str = "") -> None:
        """Add ``definition`` and index ``ref_path`` to its name.

        Raises:
            NamingConflictError: If ``ref_path`` already maps to another name.
        """
        registry = self._registry
        if ref_path:
            existing = registry.by_ref.get(ref_path)
            if existing is not None and existing != definition.name:
                raise NamingConflictError(ref_path, existing, definition.name)
            registry.by_ref[ref_path] = definition.name

        if definition.name not in registry.by_name:
            registry.order.append(definition.name)
        registry.by_name[definition.name] = definition
        registry.reserved.discard(definition.name)

    def reserve(self, name: str, ref_path: str = "") -> None:
        """Claim ``name`` (for ``ref_path``, if given) before its definition exists."""
        registry = self._registry
        if ref_path:
            existing = registry.by_ref.get(ref_path)
            if existing is not None and existing != name:
                raise NamingConflictError(ref_path, existing, name)
            registry.by_ref[ref_path] = name
        if name not in registry.by_name:
            registry.reserved.add(name)

    def lookup_by_name(self, name: str) -> TypeDefinition | None:
        return self._registry.by_name.get(name)

    def lookup_by_ref(self, ref_path: str) -> str | None:
        return self._registry.by_ref.get(ref_path)

    def exists(self, name: str) -> bool:
        return name in self._registry.by_name or name in self._registry.reserved

    def is_pending(self, name: str) -> bool:
        """True for reserved names that have no definition yet."""
        return name in self._registry.reserved

    def size(self) -> int:
        return len(self._registry.by_name)

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[TypeDefinition]:
        return iter(self.definitions())

    def definitions(self) -> list[TypeDefinition]:
        """All definitions in registration order."""
        registry = self._registry
        return [registry.by_name[name] for name in registry.order]

    def generate_unique_name(self, base: str) -> str:
        """Return ``base`` if free, else apply the default suffixes, then numbers."""
        if not self.exists(base):
            return base
        return self.generate_unique_name_with_suffixes(base, self._default_suffixes)

    def generate_unique_name_with_suffixes(self, base: str, suffixes: Sequence[str]) -> str:
        """Try ``base + suffix`` for each suffix in order, then ``base0``, ``base1``, ..."""
        for suffix in suffixes:
            candidate = f"{base}{suffix}"
            if not self.exists(candidate):
                logger.debug("Name %s taken, using %s", base, candidate)
                return candidate

        for index in itertools.count():
            candidate = f"{base}{index}"
            if not self.exists(candidate):
                logger.debug("Name %s taken, using %s", base, candidate)
                return candidate
        raise AssertionError("unreachable")
