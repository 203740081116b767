"""Outbound federation links from one emitter to others."""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional


@dataclass
class LinkEntry:
    target: Any
    prefix: Optional[str] = None

    def event_for(self, event: str) -> str:
        """Name under which ``event`` is looked up on the target."""
        return (self.prefix or "") + event


class LinkTable:
    """Ordered link entries. Duplicates are allowed and fire independently."""

    def __init__(self) -> None:
        self._links: List[LinkEntry] = []

    def add(self, target: Any, prefix: Optional[str] = None) -> LinkEntry:
        entry = LinkEntry(target=target, prefix=prefix)
        self._links.append(entry)
        return entry

    def remove(self, target: Any) -> int:
        """Drop every entry pointing at ``target``. Returns how many were removed."""
        before = len(self._links)
        self._links = [link for link in self._links if link.target is not target]
        return before - len(self._links)

    def __iter__(self) -> Iterator[LinkEntry]:
        # snapshot so a link() made mid-resolution does not alter the walk
        return iter(list(self._links))

    def __len__(self) -> int:
        return len(self._links)


__all__ = ["LinkEntry", "LinkTable"]
