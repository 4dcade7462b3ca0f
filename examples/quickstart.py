"""Quickstart: list, upload, and read back a file in a storage zone.

Demonstrates:
- Building a ZoneFs from a storage zone name and access key
- Uploading bytes with a SHA-256 checksum
- Listing a directory and resolving a file

Set ZONEFS_ZONE and ZONEFS_ACCESS_KEY before running.
"""

from __future__ import annotations

import hashlib
import os

from zonefs import DirectoryEntry, ZoneFs

if __name__ == "__main__":
    zone = os.environ["ZONEFS_ZONE"]
    key = os.environ["ZONEFS_ACCESS_KEY"]

    with ZoneFs(zone, key, root="zonefs-quickstart") as fs:
        data = b"Hello, world!"

        # Upload with a checksum the remote verifies
        fs.upload("hello.txt", data, checksum=hashlib.sha256(data).hexdigest())

        # List the directory (fresh, since the upload invalidated it)
        for entry in fs.list_dir(""):
            kind = "dir " if isinstance(entry, DirectoryEntry) else "file"
            print(f"{kind} {entry.path}")

        # Resolve and read it back
        info = fs.resolve("hello.txt")
        print(f"Size: {info.size} bytes, modified {info.modified_at}")
        print(f"Content: {fs.read_bytes(info)!r}")

        fs.delete(info)

    print("Done!")
