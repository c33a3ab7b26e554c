"""Root model base class for named array types."""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import RootModel

from .model import JSONValueMixin


class ArrayModel(JSONValueMixin, RootModel[list[Any]]):
    """A named JSON array.

    Generated subclasses narrow ``root`` to ``list[Item]`` and attach the
    item count limits to it.
    """

    root: list[Any]

    def __iter__(self) -> Iterator[Any]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Any:
        return self.root[index]
