"""Capability enum, CapabilitySet and supported hash types."""

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING

from zonefs._errors import CapabilityNotSupported, ModTimeUnsupported

if TYPE_CHECKING:
    from collections.abc import Iterator


class Capability(enum.Enum):
    """Operations a storage zone may support."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    LIST = "list"
    MKDIR = "mkdir"
    RMDIR = "rmdir"
    CHECKSUM = "checksum"
    SET_MODTIME = "set_modtime"
    RANGE_READ = "range_read"


class HashType(enum.Enum):
    """Checksum algorithms a remote can report."""

    SHA256 = "sha256"
    MD5 = "md5"


# Capabilities whose absence has a dedicated error type.
_UNSUPPORTED: dict[Capability, type[CapabilityNotSupported]] = {
    Capability.SET_MODTIME: ModTimeUnsupported,
}


@dataclasses.dataclass(frozen=True)
class CapabilitySet:
    """The operations a filesystem offers, checked before it attempts one.

    :param supported: Capabilities the remote offers.
    """

    supported: frozenset[Capability] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "supported", frozenset(self.supported))

    @classmethod
    def all_except(cls, *missing: Capability) -> CapabilitySet:
        """Every capability except ``missing``."""
        return cls(frozenset(Capability) - frozenset(missing))

    def supports(self, cap: Capability) -> bool:
        return cap in self.supported

    def require(self, cap: Capability, *, path: str | None = None, zone: str | None = None) -> None:
        """Raise unless ``cap`` is supported.

        :raises CapabilityNotSupported: Or the dedicated subclass for ``cap``,
            such as :class:`ModTimeUnsupported`.
        """
        if cap in self.supported:
            return
        error = _UNSUPPORTED.get(cap, CapabilityNotSupported)
        raise error(f"{cap.value} is not supported by this remote", path=path, zone=zone, capability=cap.value)

    def __contains__(self, cap: object) -> bool:
        return cap in self.supported

    def __iter__(self) -> Iterator[Capability]:
        return iter(sorted(self.supported, key=lambda c: c.value))

    def __len__(self) -> int:
        return len(self.supported)
