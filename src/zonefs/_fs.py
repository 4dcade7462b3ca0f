"""ZoneFs: a storage zone presented as a hierarchical filesystem."""

from __future__ import annotations

import dataclasses
import io
import logging
import shutil
import tempfile
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, BinaryIO, Callable

import httpx

from zonefs._cache import ListingCache
from zonefs._capabilities import Capability, CapabilitySet, HashType
from zonefs._config import DEFAULT_ENDPOINT, ZoneConfig
from zonefs._errors import (
    DirectoryNotFound,
    InvalidPath,
    IsDirectory,
    ObjectNotFound,
    RemoteRejected,
    UploadFailed,
)
from zonefs._models import DirectoryListing, FileObject, ListingRecord
from zonefs._options import option_headers
from zonefs._path import PathResolver, basename, normalize, parent
from zonefs._transport import Pacer, drain, interrupted, send

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from zonefs._context import CallContext
    from zonefs._models import DirEntry
    from zonefs._options import OpenOption
    from zonefs._types import Headers, WritableContent

log = logging.getLogger(__name__)

_CAPABILITIES = CapabilitySet.all_except(Capability.SET_MODTIME)
_HASHES = frozenset({HashType.SHA256})

_CHUNK_SIZE = 64 * 1024
# Non-seekable uploads are spooled so retries resend the same bytes.
_SPOOL_MAX = 8 * 1024 * 1024

FileRef = FileObject | str


class _ReplayableBody:
    """Upload content that can be sent again from the start on every attempt."""

    def __init__(self, content: WritableContent) -> None:
        self._data: bytes | None = None
        self._stream: BinaryIO | None = None
        self._spool: Any | None = None
        self._start = 0
        self.size: int | None = None
        if isinstance(content, (bytes, bytearray, memoryview)):
            self._data = bytes(content)
            self.size = len(self._data)
            return
        stream = content
        if not (callable(getattr(stream, "seekable", None)) and stream.seekable()):
            self._spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX)  # noqa: SIM115
            shutil.copyfileobj(stream, self._spool, _CHUNK_SIZE)
            self._spool.seek(0)
            stream = self._spool
        self._stream = stream
        self._start = stream.tell()
        self.size = stream.seek(0, io.SEEK_END) - self._start
        stream.seek(self._start)

    def content(self) -> bytes | Iterator[bytes]:
        if self._data is not None:
            return self._data
        assert self._stream is not None
        self._stream.seek(self._start)
        return self._chunks(self._stream)

    @staticmethod
    def _chunks(stream: BinaryIO) -> Iterator[bytes]:
        while chunk := stream.read(_CHUNK_SIZE):
            yield chunk

    def headers(self) -> Headers:
        if self._data is None and self.size is not None:
            return {"Content-Length": str(self.size)}
        return {}

    def close(self) -> None:
        if self._spool is not None:
            self._spool.close()
            self._spool = None


class _ResponseReader(io.RawIOBase):
    """Raw stream over a streamed response body; closing it releases the connection.

    Cancelling ``ctx`` closes the response, and every read fails with
    :class:`OperationCancelled` from then on.
    """

    def __init__(self, response: httpx.Response, path: str, ctx: CallContext | None = None) -> None:
        self._response = response
        self._chunks = response.iter_bytes()
        self._pending = b""
        self._path = path
        self._ctx = ctx
        self._release = ctx.on_cancel(response.close) if ctx is not None else None

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self._ctx is not None:
            self._ctx.check(self._path)
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except (httpx.HTTPError, httpx.StreamError) as exc:
                raise interrupted(exc, self._ctx, path=self._path) from exc
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            if self._release is not None:
                self._release()
                self._release = None
            self._response.close()
        super().close()


class ZoneFs:
    """A storage zone exposed as directories and files.

    Listings are cached per directory until this instance mutates that
    directory. Every operation takes an optional :class:`~zonefs.CallContext`
    to bound or cancel its remote calls.

    :param storage_zone: Storage zone name (required, non-empty).
    :param key: Access key (required, non-empty).
    :param root: Directory inside the zone that all paths are relative to.
    :param name: Name of this filesystem, for display.
    :param client: Pre-configured ``httpx.Client``; one is created (and closed
        by :meth:`close`) when omitted.
    :param sleep: Backoff sleep override, mainly for tests.
    :raises ConfigurationInvalid: If the zone name or key is missing or the
        tuning options are out of range.
    """

    def __init__(
        self,
        storage_zone: str,
        key: str,
        root: str = "",
        *,
        name: str = "zone",
        endpoint_url: str = DEFAULT_ENDPOINT,
        timeout: float = 60.0,
        min_sleep: float = 0.01,
        max_sleep: float = 60.0,
        decay_constant: float = 1.0,
        max_attempts: int = 10,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._config = ZoneConfig(
            storage_zone=storage_zone,
            key=key,
            root=root,
            endpoint_url=endpoint_url,
            timeout=timeout,
            min_sleep=min_sleep,
            max_sleep=max_sleep,
            decay_constant=decay_constant,
            max_attempts=max_attempts,
        )
        self._config.validate()
        self._name = name
        self._resolver = PathResolver(storage_zone, root, endpoint_url)
        self._pacer = Pacer(
            min_sleep=min_sleep,
            max_sleep=max_sleep,
            decay_constant=decay_constant,
            max_attempts=max_attempts,
            sleep=sleep,
        )
        self._cache = ListingCache()
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    @classmethod
    def from_config(
        cls,
        config: ZoneConfig,
        *,
        name: str = "zone",
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> ZoneFs:
        """Build a filesystem from a :class:`ZoneConfig`."""
        return cls(**dataclasses.asdict(config), name=name, client=client, sleep=sleep)

    # region: accessors

    @property
    def name(self) -> str:
        return self._name

    @property
    def root(self) -> str:
        return self._resolver.root

    @property
    def storage_zone(self) -> str:
        return self._config.storage_zone

    @property
    def config(self) -> ZoneConfig:
        return self._config

    @property
    def capabilities(self) -> CapabilitySet:
        return _CAPABILITIES

    @property
    def hashes(self) -> frozenset[HashType]:
        """Checksum algorithms the zone reports (SHA-256 only)."""
        return _HASHES

    @property
    def precision(self) -> float | None:
        """Modification time precision in seconds; ``None`` as times cannot be set."""
        return None

    @property
    def cache(self) -> ListingCache:
        return self._cache

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    # endregion

    # region: request helpers

    def _timeout(self, ctx: CallContext | None) -> float:
        remaining = ctx.remaining() if ctx is not None else None
        if remaining is None:
            return self._config.timeout
        return max(0.001, min(self._config.timeout, remaining))

    def _request(
        self,
        method: str,
        path: str,
        *,
        ctx: CallContext | None,
        directory: bool = False,
        headers: Headers | None = None,
        content: bytes | Iterator[bytes] | None = None,
    ) -> httpx.Request:
        all_headers = {"AccessKey": self._config.key, **(headers or {})}
        return self._client.build_request(
            method,
            self._resolver.resolve(path, directory=directory),
            headers=all_headers,
            content=content,
            timeout=self._timeout(ctx),
        )

    def _status(
        self,
        method: str,
        path: str,
        *,
        ctx: CallContext | None,
        directory: bool = False,
        headers: Headers | None = None,
        content: bytes | None = None,
    ) -> int:
        """Run a body-less exchange with retries and return the final status code."""

        def attempt() -> int:
            request = self._request(method, path, ctx=ctx, directory=directory, headers=headers, content=content)
            response = send(self._client, request, ctx=ctx, path=path, zone=self.storage_zone)
            drain(response)
            return response.status_code

        return self._pacer.call(attempt, ctx, path=path)

    def _require(self, cap: Capability, path: str) -> None:
        self.capabilities.require(cap, path=path, zone=self.storage_zone)

    @staticmethod
    def _path_of(target: FileRef) -> str:
        return target.path if isinstance(target, FileObject) else normalize(target)

    # endregion

    # region: listing

    def _fetch_listing(self, directory: str, ctx: CallContext | None) -> DirectoryListing:
        """Fetch one directory listing from the remote, bypassing the cache."""
        log.debug("Listing %s", self._resolver.resolve(directory, absolute=False, directory=True))

        def attempt() -> DirectoryListing:
            request = self._request(
                "GET", directory, ctx=ctx, directory=True, headers={"Accept": "application/json"}
            )
            response = send(self._client, request, ctx=ctx, path=directory, zone=self.storage_zone)
            try:
                if response.status_code == 404:
                    raise DirectoryNotFound(
                        f"Directory not found: {directory}", path=directory, zone=self.storage_zone
                    )
                if response.status_code != 200:
                    raise RemoteRejected(
                        f"Unable to list directory (status: {response.status_code})",
                        path=directory,
                        zone=self.storage_zone,
                        status_code=response.status_code,
                    )
                try:
                    payload = response.json()
                except ValueError as exc:
                    raise RemoteRejected(
                        f"Malformed listing: {exc}", path=directory, zone=self.storage_zone, status_code=200
                    ) from exc
            finally:
                response.close()
            if not isinstance(payload, list):
                raise RemoteRejected(
                    "Malformed listing: expected a JSON array", path=directory, zone=self.storage_zone, status_code=200
                )
            records = tuple(ListingRecord.from_dict(item) for item in payload if isinstance(item, dict))
            return DirectoryListing(directory=directory, records=records)

        return self._pacer.call(attempt, ctx, path=directory)

    def _listing(self, directory: str, ctx: CallContext | None) -> DirectoryListing:
        return self._cache.get(directory, lambda d: self._fetch_listing(d, ctx))

    def list_dir(self, directory: str = "", *, ctx: CallContext | None = None) -> list[DirEntry]:
        """List the files and subdirectories of ``directory`` in remote order.

        :param directory: Logical directory path, ``""`` for the root.
        :raises DirectoryNotFound: If the remote reports the directory absent.
        """
        directory = normalize(directory)
        self._require(Capability.LIST, directory)
        return list(self._listing(directory, ctx).entries())

    def resolve(self, remote: str, *, ctx: CallContext | None = None) -> FileObject:
        """Find the file at ``remote`` via its parent directory's listing.

        :raises IsDirectory: If a directory occupies the path.
        :raises ObjectNotFound: If neither a file nor a directory matches.
        """
        remote = normalize(remote)
        if not remote:
            raise IsDirectory("The root is a directory", path=remote, zone=self.storage_zone)
        directory, name = parent(remote), basename(remote)
        try:
            listing = self._listing(directory, ctx)
        except DirectoryNotFound:
            raise ObjectNotFound(f"File not found: {remote}", path=remote, zone=self.storage_zone) from None
        for file in listing.files():
            if file.name == name:
                return file
        for entry in listing.dirs():
            if entry.name == name:
                raise IsDirectory(f"Is a directory: {remote}", path=remote, zone=self.storage_zone)
        raise ObjectNotFound(f"File not found: {remote}", path=remote, zone=self.storage_zone)

    # endregion

    # region: content

    def _put(
        self,
        remote: str,
        content: WritableContent,
        checksum: str | None,
        ctx: CallContext | None,
    ) -> FileObject:
        if not remote:
            raise InvalidPath("Path must not be empty for file operations", path=remote)
        self._require(Capability.WRITE, remote)
        headers: Headers = {}
        if checksum:
            headers["Checksum"] = checksum.upper()
        body = _ReplayableBody(content)
        headers.update(body.headers())

        def attempt() -> None:
            request = self._request("PUT", remote, ctx=ctx, headers=headers, content=body.content())
            response = send(self._client, request, ctx=ctx, path=remote, zone=self.storage_zone)
            drain(response)
            if response.status_code != 201:
                raise UploadFailed(
                    f"Unable to upload file (status: {response.status_code})",
                    path=remote,
                    zone=self.storage_zone,
                    status_code=response.status_code,
                )

        try:
            self._pacer.call(attempt, ctx, path=remote)
        finally:
            body.close()
            self._cache.invalidate(parent(remote))
        log.debug("Uploaded %s (%s bytes)", remote, body.size if body.size is not None else "?")
        return FileObject(
            path=remote,
            size=-1,
            modified_at=datetime.now(tz=timezone.utc),
            checksum=checksum.lower() if checksum else "",
        )

    def upload(
        self,
        remote: str,
        content: WritableContent,
        checksum: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> FileObject:
        """Create or replace the file at ``remote``.

        :param content: Bytes or a binary stream.
        :param checksum: SHA-256 hex digest of ``content``, sent for verification.
        :returns: The new file; its size is ``-1`` as the remote does not echo it.
        :raises UploadFailed: If the remote never answered ``201 Created``.
        """
        return self._put(normalize(remote), content, checksum, ctx)

    def update(
        self,
        obj: FileObject,
        content: WritableContent,
        checksum: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> FileObject:
        """Replace the content of an existing file. Same contract as :meth:`upload`."""
        return self._put(obj.path, content, checksum, ctx)

    def download(self, obj: FileRef, *options: OpenOption, ctx: CallContext | None = None) -> BinaryIO:
        """Open a file for reading.

        :param options: Range/seek/header options forwarded as request headers.
        :returns: A buffered binary stream; close it to release the connection.
        :raises ObjectNotFound: If the remote does not serve the file.
        """
        path = self._path_of(obj)
        self._require(Capability.READ, path)
        headers = option_headers(options)
        if "Range" in headers:
            self._require(Capability.RANGE_READ, path)

        def attempt() -> httpx.Response:
            request = self._request("GET", path, ctx=ctx, headers=headers)
            response = send(self._client, request, stream=True, ctx=ctx, path=path, zone=self.storage_zone)
            if response.status_code not in (200, 206):
                drain(response)
                raise ObjectNotFound(
                    f"File not found (status: {response.status_code})", path=path, zone=self.storage_zone
                )
            return response

        response = self._pacer.call(attempt, ctx, path=path)
        return io.BufferedReader(_ResponseReader(response, path, ctx), buffer_size=_CHUNK_SIZE)

    def read_bytes(self, obj: FileRef, *, ctx: CallContext | None = None) -> bytes:
        """Download the whole file into memory."""
        with self.download(obj, ctx=ctx) as stream:
            return stream.read()

    # endregion

    # region: mutation

    def delete(self, obj: FileRef, *, ctx: CallContext | None = None) -> None:
        """Delete a file.

        :raises ObjectNotFound: If the remote reports the file absent.
        :raises RemoteRejected: For any other non-success status.
        """
        path = self._path_of(obj)
        if not path:
            raise InvalidPath("Path must not be empty for file operations", path=path)
        self._require(Capability.DELETE, path)
        status = self._status("DELETE", path, ctx=ctx)
        self._cache.invalidate(parent(path))
        if status == 404:
            raise ObjectNotFound(f"File not found: {path}", path=path, zone=self.storage_zone)
        if status != 200:
            raise RemoteRejected(
                f"Failed to delete file: {path}", path=path, zone=self.storage_zone, status_code=status
            )
        log.debug("Deleted %s", path)

    def mkdir(self, directory: str, *, ctx: CallContext | None = None) -> None:
        """Create a directory. Creating one that already exists is not an error.

        :raises RemoteRejected: If the remote refused and the directory does not exist.
        """
        directory = normalize(directory)
        if not directory:
            return
        self._require(Capability.MKDIR, directory)
        status = self._status(
            "PUT",
            directory,
            ctx=ctx,
            directory=True,
            headers={"Content-Type": "application/json"},
            content=b"{}",
        )
        self._cache.invalidate(parent(directory))
        if status in (200, 201):
            log.info("Created directory %s", directory)
            return
        if self._directory_exists(directory, ctx):
            log.debug("Directory %s already exists (status: %d)", directory, status)
            return
        raise RemoteRejected(
            f"Unable to create directory (status: {status})",
            path=directory,
            zone=self.storage_zone,
            status_code=status,
        )

    def _directory_exists(self, directory: str, ctx: CallContext | None) -> bool:
        directory_parent = parent(directory)
        try:
            listing = self._fetch_listing(directory_parent, ctx)
        except DirectoryNotFound:
            return False
        self._cache.put(directory_parent, listing)
        name = basename(directory)
        return any(entry.name == name for entry in listing.dirs())

    def rmdir(self, directory: str, *, ctx: CallContext | None = None) -> None:
        """Remove an empty directory; the remote decides what counts as empty.

        :raises InvalidPath: If ``directory`` is the filesystem root.
        :raises DirectoryNotFound: If the directory does not exist.
        :raises RemoteRejected: If the remote refused (e.g. not empty).
        """
        directory = normalize(directory)
        if not directory:
            raise InvalidPath("Cannot remove the filesystem root", path=directory)
        self._require(Capability.RMDIR, directory)
        status = self._status("DELETE", directory, ctx=ctx, directory=True)
        self._cache.invalidate(parent(directory))
        self._cache.invalidate(directory)
        if status == 404:
            raise DirectoryNotFound(f"Directory not found: {directory}", path=directory, zone=self.storage_zone)
        if status != 200:
            raise RemoteRejected(
                f"Unable to delete directory (status: {status})",
                path=directory,
                zone=self.storage_zone,
                status_code=status,
            )
        log.info("Removed directory %s", directory)

    def set_mod_time(self, obj: FileRef, modified_at: datetime) -> None:
        """Always fails: the remote does not accept client-set modification times.

        :raises ModTimeUnsupported: Always.
        """
        self._require(Capability.SET_MODTIME, self._path_of(obj))

    # endregion

    # region: lifecycle

    def close(self) -> None:
        """Release the HTTP client if this instance created it."""
        self._cache.clear()
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ZoneFs:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __str__(self) -> str:
        return f"Storage zone {self.storage_zone} path {self.root}"

    def __repr__(self) -> str:
        return f"ZoneFs(name={self._name!r}, zone={self.storage_zone!r}, root={self.root!r})"

    # endregion
