"""Listing records and the immutable values built from them."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from zonefs._capabilities import HashType
from zonefs._errors import CapabilityNotSupported
from zonefs._path import basename, join, parent

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
"""Modification time reported when the remote timestamp cannot be parsed."""


def parse_timestamp(raw: str) -> datetime:
    """Parse a ``2017-03-10T03:06:48.203`` style timestamp as UTC.

    The fractional part is optional and may have any number of digits.
    Returns :data:`ZERO_TIME` for anything unparseable.
    """
    stamp, _, fraction = raw.partition(".")
    try:
        parsed = datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S")
        if fraction:
            if not fraction.isdigit():
                raise ValueError(f"bad fraction {fraction!r}")
            parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    except ValueError:
        log.debug("Unparseable timestamp %r, using zero time", raw)
        return ZERO_TIME
    return parsed.replace(tzinfo=timezone.utc)


@dataclasses.dataclass(frozen=True)
class ListingRecord:
    """One raw entry of a directory listing, file or directory.

    ``checksum`` is only meaningful when ``is_directory`` is false.
    """

    object_name: str
    length: int = 0
    last_changed: str = ""
    is_directory: bool = False
    checksum: str = ""
    guid: str = ""
    storage_zone_name: str = ""
    path: str = ""
    content_type: str = ""
    date_created: str = ""
    replicated_zones: str = ""

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> ListingRecord:
        """Build a record from one decoded JSON object of a listing payload."""
        return cls(
            object_name=str(item.get("ObjectName") or ""),
            length=int(item.get("Length") or 0),
            last_changed=str(item.get("LastChanged") or ""),
            is_directory=bool(item.get("IsDirectory", False)),
            checksum=str(item.get("Checksum") or ""),
            guid=str(item.get("Guid") or ""),
            storage_zone_name=str(item.get("StorageZoneName") or ""),
            path=str(item.get("Path") or ""),
            content_type=str(item.get("ContentType") or ""),
            date_created=str(item.get("DateCreated") or ""),
            replicated_zones=str(item.get("ReplicatedZones") or ""),
        )

    @property
    def modified_at(self) -> datetime:
        return parse_timestamp(self.last_changed)

    def full_path(self, directory: str) -> str:
        """Logical path of this entry inside ``directory``."""
        return join(directory, self.object_name)


@dataclasses.dataclass(frozen=True, eq=False)
class FileObject:
    """Immutable snapshot of a remote file. Two snapshots are equal when they name the same path.

    :param path: Logical path relative to the filesystem root.
    :param size: Size in bytes, ``-1`` when unknown (right after an upload).
    :param modified_at: Last modification time.
    :param checksum: Lower-case SHA-256 hex digest, empty when unknown.
    """

    path: str
    size: int
    modified_at: datetime
    checksum: str = ""

    @classmethod
    def from_record(cls, directory: str, record: ListingRecord) -> FileObject:
        return cls(
            path=record.full_path(directory),
            size=record.length,
            modified_at=record.modified_at,
            checksum=record.checksum.lower(),
        )

    @property
    def name(self) -> str:
        return basename(self.path)

    @property
    def parent(self) -> str:
        return parent(self.path)

    def hash(self, kind: HashType) -> str:
        """Return the checksum of the given type.

        :raises CapabilityNotSupported: For any algorithm other than SHA-256.
        """
        if kind is HashType.SHA256:
            return self.checksum
        raise CapabilityNotSupported(
            f"Hash type '{kind.value}' is not supported",
            path=self.path,
            capability=kind.value,
        )

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FileObject):
            return self.path == other.path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.path)

    def __str__(self) -> str:
        return self.path


@dataclasses.dataclass(frozen=True)
class DirectoryEntry:
    """A subdirectory found in a listing.

    :param path: Logical path relative to the filesystem root.
    :param modified_at: Last modification time reported by the remote.
    """

    path: str
    modified_at: datetime = ZERO_TIME

    @property
    def name(self) -> str:
        return basename(self.path)

    def __str__(self) -> str:
        return self.path


DirEntry = DirectoryEntry | FileObject


@dataclasses.dataclass(frozen=True)
class DirectoryListing:
    """A fetched directory listing, as held by the listing cache.

    :param directory: Logical directory path (``""`` for the root).
    :param records: Entries in the order the remote returned them.
    :param fetched_at: When the listing was fetched.
    """

    directory: str
    records: tuple[ListingRecord, ...] = ()
    fetched_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def files(self) -> Iterator[FileObject]:
        for record in self.records:
            if not record.is_directory:
                yield FileObject.from_record(self.directory, record)

    def dirs(self) -> Iterator[DirectoryEntry]:
        for record in self.records:
            if record.is_directory:
                yield DirectoryEntry(path=record.full_path(self.directory), modified_at=record.modified_at)

    def entries(self) -> Iterator[DirEntry]:
        """All entries, files and directories interleaved in listing order."""
        for record in self.records:
            if record.is_directory:
                yield DirectoryEntry(path=record.full_path(self.directory), modified_at=record.modified_at)
            else:
                yield FileObject.from_record(self.directory, record)

    def __len__(self) -> int:
        return len(self.records)
