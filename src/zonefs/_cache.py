"""ListingCache: directory listings kept until a mutation invalidates them."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from zonefs._models import DirectoryListing

log = logging.getLogger(__name__)


def _key(directory: str) -> str:
    return "" if directory == "." else directory


class ListingCache:
    """Maps directory paths to their last fetched listing.

    There is no expiry: an entry lives until :meth:`invalidate` removes it, so
    changes made to the zone by other clients stay invisible until this
    filesystem mutates the same directory. The lock only guards the mapping;
    fetches run outside it, so two threads missing on the same directory may
    both fetch it and the last one stored wins.

    Every invalidation bumps the directory's generation. A fetch that was
    running while its directory was invalidated returns its listing to the
    caller but does not store it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, DirectoryListing] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def _generation(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def get(self, directory: str, fetch: Callable[[str], DirectoryListing]) -> DirectoryListing:
        """Return the cached listing, fetching and storing it on a miss.

        Errors raised by ``fetch`` propagate unchanged and nothing is stored.
        """
        key = _key(directory)
        with self._lock:
            listing = self._entries.get(key)
            generation = self._generation(key)
        if listing is not None:
            log.debug("Listing cache hit: %r", key)
            return listing
        log.debug("Listing cache miss: %r", key)
        listing = fetch(key)
        with self._lock:
            current = self._generation(key) == generation
            if current:
                self._entries[key] = listing
        if not current:
            log.debug("Listing of %r invalidated while fetching, not stored", key)
        return listing

    def peek(self, directory: str) -> DirectoryListing | None:
        """Return the cached listing without fetching."""
        with self._lock:
            return self._entries.get(_key(directory))

    def put(self, directory: str, listing: DirectoryListing) -> None:
        with self._lock:
            self._entries[_key(directory)] = listing

    def invalidate(self, directory: str) -> None:
        """Drop the entry for ``directory``; a missing entry is not an error."""
        key = _key(directory)
        with self._lock:
            removed = self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1
        if removed is not None:
            log.debug("Listing cache invalidated: %r", key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1

    def __contains__(self, directory: object) -> bool:
        if not isinstance(directory, str):
            return False
        with self._lock:
            return _key(directory) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        with self._lock:
            keys = sorted(self._entries)
        return f"ListingCache(directories={keys!r})"
