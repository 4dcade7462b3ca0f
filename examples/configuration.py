"""Configuration: config-as-code, from_dict(), and tuning retries.

Demonstrates the ways to describe a storage zone and build a ZoneFs from it.
These are config-only examples; no requests are sent.
"""

from __future__ import annotations

import os

from zonefs import ConfigurationInvalid, ZoneConfig, ZoneFs

if __name__ == "__main__":
    # --- Option 1: Config-as-code ---
    config = ZoneConfig(storage_zone="my-zone", key="example-key", root="backups/daily")
    with ZoneFs.from_config(config, name="backups") as fs:
        print(f"{fs.name}: {fs}")
        print(f"  listing URL: {fs.resolver.resolve('', directory=True)}")

    # --- Option 2: from_dict(), e.g. loaded from TOML or JSON ---
    os.environ.setdefault("ZONEFS_ACCESS_KEY", "key-from-environment")
    raw = {
        "storagezone": "media-zone",
        "root": "images",
        "max_attempts": "5",
        "max_sleep": 30,
    }
    config = ZoneConfig.from_dict(raw)
    print(f"\nfrom_dict(): {config}")

    # --- Tuning: a regional endpoint and a tighter retry budget ---
    with ZoneFs(
        "my-zone",
        "example-key",
        endpoint_url="https://uk.storage.bunnycdn.com",
        min_sleep=0.1,
        max_sleep=10,
        max_attempts=3,
    ) as fs:
        print(f"\nRegional: {fs.resolver.resolve('report.csv')}")

    # --- Validation ---
    for bad in [{"storage_zone": "z"}, {"storage_zone": "z", "key": "k", "colour": "blue"}]:
        try:
            ZoneConfig.from_dict({**bad, "key": bad.get("key", "")})
        except ConfigurationInvalid as exc:
            print(f"\nConfigurationInvalid: {exc}")

    print("\nDone!")
