"""In-process storage backend."""

from collections.abc import Iterator


class MemoryStorage:
    """Dictionary backed storage with synchronous methods.

    Used as the process-wide default backend. Contents live as long as the
    instance does, so it is shared by every source that relies on the
    default storage.
    """

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        """Remove every stored item."""
        self._items.clear()

    def keys(self) -> list[str]:
        return list(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"MemoryStorage(items={len(self._items)})"
