"""Logical path normalization and mapping to storage API URLs."""

from __future__ import annotations

import posixpath
from urllib.parse import quote

from zonefs._errors import InvalidPath

# RFC 3986 pchar sub-delims plus ':' and '@' stay literal; '/' separates segments.
_SAFE = "/:@!$&'()*+,;="


def normalize(raw: str) -> str:
    """Normalize a logical path.

    Empty and ``.`` segments are dropped, so the result never has a leading or
    trailing slash. The root is ``""``. Only ``/`` separates segments; a
    backslash is an ordinary character, as in remote object names.

    :raises InvalidPath: If the path contains a null byte.
    """
    if "\0" in raw:
        raise InvalidPath("Path contains null byte", path=raw)
    parts = [segment for segment in raw.split("/") if segment not in ("", ".")]
    return "/".join(parts)


def join(directory: str, name: str) -> str:
    """Join a directory and an entry name; an empty directory yields just the name."""
    if not directory or directory == ".":
        return name
    return f"{directory}/{name}"


def parent(path: str) -> str:
    """Parent directory of a logical path (``""`` for top-level entries)."""
    head = posixpath.dirname(normalize(path))
    return "" if head == "." else head


def basename(path: str) -> str:
    """Final component of a logical path."""
    return normalize(path).rsplit("/", 1)[-1]


class PathResolver:
    """Maps logical paths under a configured root to storage API locators.

    :param storage_zone: Zone name, the first URL path segment.
    :param root: Base directory inside the zone.
    :param endpoint_url: Scheme and host of the storage API.
    """

    __slots__ = ("_zone", "_root", "_endpoint")

    def __init__(self, storage_zone: str, root: str = "", endpoint_url: str = "") -> None:
        self._zone = storage_zone
        self._root = normalize(root)
        self._endpoint = endpoint_url.rstrip("/")

    @property
    def root(self) -> str:
        return self._root

    def remote_key(self, path: str) -> str:
        """Zone-relative key for ``path``: root and path joined POSIX-style."""
        joined = posixpath.normpath(posixpath.join("/", self._root, normalize(path)))
        return joined.lstrip("/")

    def resolve(self, path: str, *, absolute: bool = True, directory: bool = False) -> str:
        """Return the escaped request locator for ``path``.

        :param absolute: Prefix the endpoint URL; otherwise return a host-relative path.
        :param directory: Address the path as a directory (exactly one trailing slash).
        """
        key = self.remote_key(path)
        url = f"/{quote(self._zone, safe='')}/{quote(key, safe=_SAFE)}"
        if directory and key:
            url += "/"
        if absolute:
            url = self._endpoint + url
        return url

    def __repr__(self) -> str:
        return f"PathResolver(zone={self._zone!r}, root={self._root!r})"
