"""Options forwarded as request headers when opening a file for reading."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from zonefs._types import Headers


@dataclasses.dataclass(frozen=True)
class RangeOption:
    """Read ``start``..``end`` inclusive.

    A negative ``start`` with no ``end`` reads the last ``-start`` bytes;
    ``end=None`` reads to the end of the file.
    """

    start: int
    end: int | None = None

    def __post_init__(self) -> None:
        if self.end is not None and (self.start < 0 or self.end < self.start):
            raise ValueError(f"Invalid range {self.start}-{self.end}")

    def header(self) -> tuple[str, str]:
        if self.start < 0:
            return "Range", f"bytes={self.start}"
        end = "" if self.end is None else str(self.end)
        return "Range", f"bytes={self.start}-{end}"


@dataclasses.dataclass(frozen=True)
class SeekOption:
    """Start reading at ``offset``."""

    offset: int

    def header(self) -> tuple[str, str]:
        return "Range", f"bytes={self.offset}-"


@dataclasses.dataclass(frozen=True)
class HeaderOption:
    """Send an arbitrary header, e.g. ``If-None-Match``."""

    key: str
    value: str

    def header(self) -> tuple[str, str]:
        return self.key, self.value


OpenOption = RangeOption | SeekOption | HeaderOption


def option_headers(options: Iterable[OpenOption]) -> Headers:
    """Collapse open options into request headers; later options win."""
    headers: Headers = {}
    for option in options:
        key, value = option.header()
        headers[key] = value
    return headers
