"""Tests for ZoneFs against a mocked storage API."""

from __future__ import annotations

import io
from datetime import datetime, timezone

import httpx
import pytest
import respx

from tests.conftest import ENDPOINT, KEY, ZONE, record
from zonefs import (
    Capability,
    CallContext,
    ConfigurationInvalid,
    DirectoryEntry,
    DirectoryNotFound,
    FileObject,
    HashType,
    InvalidPath,
    IsDirectory,
    ModTimeUnsupported,
    ObjectNotFound,
    OperationCancelled,
    RangeOption,
    RateLimited,
    RemoteRejected,
    UploadFailed,
    ZoneConfig,
    ZoneFs,
)

CHECKSUM = "DEAD" + "0" * 56 + "BEEF"
SHA = "ab12" + "0" * 60


def listing(router: respx.MockRouter, directory: str, *records: dict) -> respx.Route:
    url = f"/{ZONE}/{directory}/" if directory else f"/{ZONE}/"
    return router.get(url).respond(200, json=list(records))


class OneShot(io.RawIOBase):
    """A readable stream that cannot seek, like a pipe."""

    def __init__(self, data: bytes) -> None:
        self._data = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: bytearray) -> int:  # type: ignore[override]
        chunk = self._data.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)


class TestConstruction:
    """Configuration is validated up front and accessors reflect it."""

    @pytest.mark.parametrize(("zone", "key"), [("", "k"), ("z", ""), ("  ", "k")])
    def test_requires_zone_and_key(self, zone: str, key: str) -> None:
        with pytest.raises(ConfigurationInvalid):
            ZoneFs(zone, key)

    def test_from_config(self) -> None:
        cfg = ZoneConfig(storage_zone=ZONE, key=KEY, root="backups")
        with ZoneFs.from_config(cfg, name="remote") as zfs:
            assert zfs.name == "remote"
            assert zfs.root == "backups"
            assert zfs.storage_zone == ZONE
            assert zfs.config == cfg

    def test_accessors(self, fs: ZoneFs) -> None:
        assert fs.root == ""
        assert fs.hashes == frozenset({HashType.SHA256})
        assert fs.precision is None
        assert not fs.capabilities.supports(Capability.SET_MODTIME)
        assert fs.capabilities.supports(Capability.LIST)
        assert str(fs) == f"Storage zone {ZONE} path "

    def test_instances_do_not_share_cache(self, router: respx.MockRouter) -> None:
        route = listing(router, "", record("a.txt"))
        with ZoneFs(ZONE, KEY) as one, ZoneFs(ZONE, KEY) as two:
            one.list_dir("")
            two.list_dir("")
        assert route.call_count == 2


class TestEndToEnd:
    """Zone ``my-zone`` with one file and one directory at the root."""

    @pytest.fixture(autouse=True)
    def root_listing(self, router: respx.MockRouter) -> respx.Route:
        return listing(
            router,
            "",
            record("report.csv", length=120, checksum=CHECKSUM, LastChanged="2024-01-01T00:00:00.000"),
            record("archive", is_directory=True),
        )

    def test_list_root(self, fs: ZoneFs) -> None:
        entries = fs.list_dir("")
        assert len(entries) == 2
        files = [e for e in entries if isinstance(e, FileObject)]
        dirs = [e for e in entries if isinstance(e, DirectoryEntry)]
        assert len(files) == 1
        assert len(dirs) == 1
        report = files[0]
        assert report.name == "report.csv"
        assert report.size == 120
        assert report.checksum == CHECKSUM.lower()
        assert report.modified_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert dirs[0].name == "archive"

    def test_resolve_file(self, fs: ZoneFs) -> None:
        listed = next(e for e in fs.list_dir("") if isinstance(e, FileObject))
        resolved = fs.resolve("report.csv")
        assert resolved == listed
        assert (resolved.size, resolved.modified_at, resolved.checksum) == (
            listed.size,
            listed.modified_at,
            listed.checksum,
        )

    def test_resolve_directory(self, fs: ZoneFs) -> None:
        with pytest.raises(IsDirectory):
            fs.resolve("archive")

    def test_listing_cached(self, fs: ZoneFs, root_listing: respx.Route) -> None:
        fs.list_dir("")
        fs.list_dir(".")
        fs.resolve("report.csv")
        assert root_listing.call_count == 1

    def test_request_headers(self, fs: ZoneFs, root_listing: respx.Route) -> None:
        fs.list_dir("")
        request = root_listing.calls.last.request
        assert request.headers["AccessKey"] == KEY
        assert request.headers["Accept"] == "application/json"
        assert request.url == f"{ENDPOINT}/{ZONE}/"


class TestList:
    """Directory listing, status mapping and retries."""

    def test_nested_paths(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "a/b", record("c.txt"), record("d", is_directory=True))
        assert [e.path for e in fs.list_dir("a/b")] == ["a/b/c.txt", "a/b/d"]

    def test_configured_root(self, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/base/sub/").respond(200, json=[record("x")])
        with ZoneFs(ZONE, KEY, "/base") as zfs:
            assert [e.path for e in zfs.list_dir("sub")] == ["sub/x"]
        assert route.called

    def test_directory_not_found(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/missing/").respond(404)
        with pytest.raises(DirectoryNotFound):
            fs.list_dir("missing")
        assert "missing" not in fs.cache

    def test_other_status_not_retried(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/").respond(500)
        with pytest.raises(RemoteRejected) as exc_info:
            fs.list_dir("")
        assert exc_info.value.status_code == 500
        assert route.call_count == 1

    def test_malformed_payload(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/").respond(200, json={"not": "a list"})
        with pytest.raises(RemoteRejected, match="Malformed"):
            fs.list_dir("")

    def test_rate_limited_twice_then_ok(self, fs: ZoneFs, router: respx.MockRouter, sleeps: list[float]) -> None:
        route = router.get(f"/{ZONE}/").mock(
            side_effect=[
                httpx.Response(429),
                httpx.Response(429),
                httpx.Response(200, json=[record("a.txt")]),
            ]
        )
        assert [e.name for e in fs.list_dir("")] == ["a.txt"]
        assert route.call_count == 3
        assert len(sleeps) == 2
        assert 2 * 0.01 <= sum(sleeps) <= 2 * 60.0

    def test_rate_limit_exhausted(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/").respond(429)
        with pytest.raises(RateLimited):
            fs.list_dir("")
        assert route.call_count == 4

    def test_connection_error_retried(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/").mock(
            side_effect=[httpx.ConnectError("reset"), httpx.Response(200, json=[])]
        )
        assert fs.list_dir("") == []
        assert route.call_count == 2

    def test_cancelled_context(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = listing(router, "")
        ctx = CallContext()
        ctx.cancel()
        with pytest.raises(OperationCancelled):
            fs.list_dir("", ctx=ctx)
        assert not route.called


class TestResolve:
    """Files are found through the parent listing; directories are never reported missing."""

    def test_directory_is_not_not_found(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "x", record("docs", is_directory=True))
        with pytest.raises(IsDirectory):
            fs.resolve("x/docs")

    def test_nothing_matches(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "x", record("other.txt"))
        with pytest.raises(ObjectNotFound):
            fs.resolve("x/docs")

    def test_file_preferred_over_directory(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "x", record("docs", is_directory=True), record("docs", length=3))
        assert fs.resolve("x/docs").size == 3

    def test_missing_parent(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/nope/").respond(404)
        with pytest.raises(ObjectNotFound):
            fs.resolve("nope/file.txt")

    def test_listed_name_with_backslash_resolves(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = listing(router, "", record("a\\b.txt", length=5))
        (listed,) = fs.list_dir("")
        assert listed.path == "a\\b.txt"
        resolved = fs.resolve(listed.path)
        assert resolved == listed
        assert resolved.size == 5
        assert route.call_count == 1

    def test_root_is_directory(self, fs: ZoneFs) -> None:
        with pytest.raises(IsDirectory):
            fs.resolve("")


class TestUpload:
    """Uploads send the checksum upper-case, replay bodies on retry and invalidate the parent."""

    def test_checksum_sent_upper_case(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.put(f"/{ZONE}/a/file.txt").respond(201)
        obj = fs.upload("a/file.txt", b"hello", checksum=SHA)
        request = route.calls.last.request
        assert request.headers["Checksum"] == SHA.upper()
        assert request.headers["AccessKey"] == KEY
        assert request.content == b"hello"
        assert obj.checksum == SHA
        assert obj.path == "a/file.txt"
        assert obj.size == -1

    def test_no_checksum_header_when_unknown(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.put(f"/{ZONE}/file.txt").respond(201)
        obj = fs.upload("file.txt", b"x")
        assert "Checksum" not in route.calls.last.request.headers
        assert obj.checksum == ""

    def test_invalidates_parent_listing(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        list_route = listing(router, "a/b", record("old.txt"))
        router.put(f"/{ZONE}/a/b/file.txt").respond(201)
        fs.list_dir("a/b")
        fs.list_dir("a/b")
        assert list_route.call_count == 1
        fs.upload("a/b/file.txt", b"data")
        assert "a/b" not in fs.cache
        fs.list_dir("a/b")
        assert list_route.call_count == 2

    def test_root_upload_invalidates_root(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "")
        router.put(f"/{ZONE}/top.txt").respond(201)
        fs.list_dir("")
        fs.upload("top.txt", b"x")
        assert "" not in fs.cache

    def test_non_created_retried(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.put(f"/{ZONE}/f.txt").mock(side_effect=[httpx.Response(500), httpx.Response(201)])
        fs.upload("f.txt", b"x")
        assert route.call_count == 2

    def test_exhausted_carries_status(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.put(f"/{ZONE}/f.txt").respond(400)
        with pytest.raises(UploadFailed) as exc_info:
            fs.upload("f.txt", b"x")
        assert exc_info.value.status_code == 400
        assert route.call_count == 4

    def test_seekable_stream_resent_from_start(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        bodies: list[bytes] = []
        statuses = iter([500, 201])

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.read())
            return httpx.Response(next(statuses))

        route = router.put(f"/{ZONE}/f.bin").mock(side_effect=handler)
        stream = io.BytesIO(b"skip:payload")
        stream.seek(5)
        fs.upload("f.bin", stream)
        assert bodies == [b"payload", b"payload"]
        assert route.calls.last.request.headers["Content-Length"] == "7"

    def test_non_seekable_stream_spooled(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        bodies: list[bytes] = []
        statuses = iter([503, 201])

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.read())
            return httpx.Response(next(statuses))

        router.put(f"/{ZONE}/pipe.bin").mock(side_effect=handler)
        fs.upload("pipe.bin", io.BufferedReader(OneShot(b"streamed bytes")))
        assert bodies == [b"streamed bytes", b"streamed bytes"]

    def test_empty_path_rejected(self, fs: ZoneFs) -> None:
        with pytest.raises(InvalidPath):
            fs.upload("", b"x")


class TestUpdate:
    """Updates replace content at the object's path."""

    def test_update_existing_object(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        list_route = listing(router, "docs", record("a.txt", length=3, checksum="AA"))
        put_route = router.put(f"/{ZONE}/docs/a.txt").respond(201)
        obj = fs.resolve("docs/a.txt")
        updated = fs.update(obj, b"new content", checksum="bb")
        assert put_route.calls.last.request.headers["Checksum"] == "BB"
        assert updated.path == obj.path
        assert updated.size == -1
        fs.list_dir("docs")
        assert list_route.call_count == 2


class TestDownload:
    """Downloads stream the body and forward open options as headers."""

    def test_read_content(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/a/f.txt").respond(200, content=b"file content")
        obj = FileObject(path="a/f.txt", size=12, modified_at=datetime.now(tz=timezone.utc))
        with fs.download(obj) as stream:
            assert stream.read() == b"file content"

    def test_read_bytes_by_path(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/f.txt").respond(200, content=b"abc")
        assert fs.read_bytes("f.txt") == b"abc"

    def test_range_forwarded(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/f.txt").respond(206, content=b"abcd")
        with fs.download("f.txt", RangeOption(0, 3)) as stream:
            assert stream.read() == b"abcd"
        request = route.calls.last.request
        assert request.headers["Range"] == "bytes=0-3"
        assert request.headers["AccessKey"] == KEY

    def test_not_found(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        route = router.get(f"/{ZONE}/gone.txt").respond(404, content=b"Object Not Found")
        with pytest.raises(ObjectNotFound):
            fs.download("gone.txt")
        assert route.call_count == 1

    def test_rate_limit_retried(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/f.txt").mock(side_effect=[httpx.Response(429), httpx.Response(200, content=b"ok")])
        assert fs.read_bytes("f.txt") == b"ok"

    def test_cancel_stops_open_stream(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/big.bin").respond(200, content=b"x" * 200_000)
        ctx = CallContext()
        with fs.download("big.bin", ctx=ctx) as stream:
            assert stream.read(10) == b"x" * 10
            ctx.cancel()
            with pytest.raises(OperationCancelled) as exc_info:
                stream.read()
        assert exc_info.value.path == "big.bin"

    def test_stream_close_unregisters_from_context(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.get(f"/{ZONE}/f.txt").respond(200, content=b"abc")
        ctx = CallContext()
        with fs.download("f.txt", ctx=ctx) as stream:
            assert stream.read() == b"abc"
            assert len(ctx._callbacks) == 1
        assert stream.closed
        assert ctx._callbacks == {}


class TestDelete:
    """Deletes map status codes and invalidate the parent listing."""

    def test_delete_invalidates_parent(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "d", record("f.txt"))
        route = router.delete(f"/{ZONE}/d/f.txt").respond(200)
        obj = fs.resolve("d/f.txt")
        fs.delete(obj)
        assert route.called
        assert "d" not in fs.cache

    def test_not_found(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.delete(f"/{ZONE}/f.txt").respond(404)
        with pytest.raises(ObjectNotFound):
            fs.delete("f.txt")

    def test_rejected(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.delete(f"/{ZONE}/f.txt").respond(500)
        with pytest.raises(RemoteRejected) as exc_info:
            fs.delete("f.txt")
        assert exc_info.value.status_code == 500


class TestMkdir:
    """Directory creation is idempotent."""

    def test_create(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "a")
        route = router.put(f"/{ZONE}/a/new/").respond(201)
        fs.list_dir("a")
        fs.mkdir("a/new")
        request = route.calls.last.request
        assert request.content == b"{}"
        assert request.headers["Content-Type"] == "application/json"
        assert "a" not in fs.cache

    def test_root_is_noop(self, fs: ZoneFs) -> None:
        fs.mkdir("")

    def test_existing_directory_is_not_an_error(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.put(f"/{ZONE}/dup/").respond(400)
        listing(router, "", record("dup", is_directory=True))
        fs.mkdir("dup")
        assert "" in fs.cache

    def test_refused(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.put(f"/{ZONE}/bad/").respond(400)
        listing(router, "")
        with pytest.raises(RemoteRejected) as exc_info:
            fs.mkdir("bad")
        assert exc_info.value.status_code == 400


class TestRmdir:
    """Directory removal maps status codes and protects the root."""

    def test_remove(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        listing(router, "")
        route = router.delete(f"/{ZONE}/old/").respond(200)
        fs.list_dir("")
        fs.rmdir("old")
        assert route.called
        assert "" not in fs.cache

    def test_not_found(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.delete(f"/{ZONE}/old/").respond(404)
        with pytest.raises(DirectoryNotFound):
            fs.rmdir("old")

    def test_not_empty(self, fs: ZoneFs, router: respx.MockRouter) -> None:
        router.delete(f"/{ZONE}/full/").respond(400)
        with pytest.raises(RemoteRejected) as exc_info:
            fs.rmdir("full")
        assert not isinstance(exc_info.value, DirectoryNotFound)

    def test_root_rejected(self, fs: ZoneFs) -> None:
        with pytest.raises(InvalidPath):
            fs.rmdir("")


class TestModTime:
    """Modification times are server-assigned."""

    def test_not_settable(self, fs: ZoneFs) -> None:
        obj = FileObject(path="f", size=1, modified_at=datetime.now(tz=timezone.utc))
        with pytest.raises(ModTimeUnsupported):
            fs.set_mod_time(obj, datetime(2020, 1, 1, tzinfo=timezone.utc))

    def test_error_names_path_zone_and_capability(self, fs: ZoneFs) -> None:
        with pytest.raises(ModTimeUnsupported) as exc_info:
            fs.set_mod_time("docs/f.txt", datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert exc_info.value.path == "docs/f.txt"
        assert exc_info.value.zone == ZONE
        assert exc_info.value.capability == Capability.SET_MODTIME.value
        assert not fs.capabilities.supports(Capability.SET_MODTIME)
