"""Type aliases used throughout zonefs."""

from __future__ import annotations

from typing import BinaryIO

WritableContent = BinaryIO | bytes
Headers = dict[str, str]
