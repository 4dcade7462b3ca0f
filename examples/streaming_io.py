"""Streaming I/O: upload from a stream, download in chunks, read ranges.

Set ZONEFS_ZONE and ZONEFS_ACCESS_KEY before running.
"""

from __future__ import annotations

import hashlib
import io
import os

from zonefs import RangeOption, ZoneFs

if __name__ == "__main__":
    with ZoneFs(os.environ["ZONEFS_ZONE"], os.environ["ZONEFS_ACCESS_KEY"], root="zonefs-streaming") as fs:
        # --- Upload from a BytesIO stream ---
        data = b"".join(f"line{i}\n".encode() for i in range(1, 1001))
        fs.upload("streamed.txt", io.BytesIO(data), checksum=hashlib.sha256(data).hexdigest())

        # --- Download as a stream, processing chunks ---
        digest = hashlib.sha256()
        with fs.download("streamed.txt") as stream:
            while chunk := stream.read(4096):
                digest.update(chunk)
        info = fs.resolve("streamed.txt")
        print(f"Checksum matches: {digest.hexdigest() == info.checksum}")

        # --- Read a byte range ---
        with fs.download(info, RangeOption(0, 11)) as stream:
            print(f"First two lines: {stream.read()!r}")

        fs.delete(info)

    print("Done!")
