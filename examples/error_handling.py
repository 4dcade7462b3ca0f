"""Error handling: catching ObjectNotFound, IsDirectory, RemoteRejected, etc.

Demonstrates the normalized error hierarchy and how to handle errors
programmatically using structured attributes.

Set ZONEFS_ZONE and ZONEFS_ACCESS_KEY before running.
"""

from __future__ import annotations

import os

from zonefs import (
    CallContext,
    ConfigurationInvalid,
    IsDirectory,
    ModTimeUnsupported,
    ObjectNotFound,
    OperationCancelled,
    RemoteRejected,
    ZoneFs,
    ZoneFsError,
)

if __name__ == "__main__":
    # --- ConfigurationInvalid ---
    try:
        ZoneFs("", "key")
    except ConfigurationInvalid as exc:
        print(f"ConfigurationInvalid: {exc}")

    with ZoneFs(os.environ["ZONEFS_ZONE"], os.environ["ZONEFS_ACCESS_KEY"], root="zonefs-errors") as fs:
        fs.mkdir("docs")

        # --- ObjectNotFound ---
        try:
            fs.resolve("missing.txt")
        except ObjectNotFound as exc:
            print(f"\nObjectNotFound: {exc}")
            print(f"  path={exc.path}, zone={exc.zone}")

        # --- IsDirectory: a directory is never reported as a missing file ---
        try:
            fs.resolve("docs")
        except IsDirectory as exc:
            print(f"\nIsDirectory: {exc}")

        # --- RemoteRejected carries the status code ---
        fs.upload("docs/a.txt", b"data")
        try:
            fs.rmdir("docs")
        except RemoteRejected as exc:
            print(f"\nRemoteRejected ({exc.status_code}): {exc}")

        # --- ModTimeUnsupported ---
        info = fs.resolve("docs/a.txt")
        try:
            fs.set_mod_time(info, info.modified_at)
        except ModTimeUnsupported as exc:
            print(f"\nModTimeUnsupported: capability={exc.capability}")

        # --- OperationCancelled ---
        ctx = CallContext()
        ctx.cancel()
        try:
            fs.list_dir("docs", ctx=ctx)
        except OperationCancelled as exc:
            print(f"\nOperationCancelled: {exc}")

        # --- Catch any zonefs error with the base class ---
        for path in ["missing.txt", "docs"]:
            try:
                fs.resolve(path)
            except ZoneFsError as exc:
                print(f"\nZoneFsError ({type(exc).__name__}): {exc}")

        fs.delete(info)
        fs.rmdir("docs")

    print("\nDone!")
