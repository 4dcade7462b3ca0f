"""Configuration model: the immutable description of a storage zone."""

from __future__ import annotations

import dataclasses
import os

from zonefs._errors import ConfigurationInvalid

DEFAULT_ENDPOINT = "https://storage.bunnycdn.com"

_KEY_ENV = "ZONEFS_ACCESS_KEY"

# Option names accepted by from_dict, mapped to ZoneConfig fields.
_ALIASES = {
    "storagezone": "storage_zone",
    "zone": "storage_zone",
    "access_key": "key",
}


@dataclasses.dataclass(frozen=True)
class ZoneConfig:
    """Describes one storage zone and how to talk to it.

    :param storage_zone: Name of the storage zone (required, non-empty).
    :param key: Access key sent with every request (required, non-empty).
    :param root: Base directory inside the zone that all paths are relative to.
    :param endpoint_url: Storage API endpoint.
    :param timeout: Per-request timeout in seconds.
    :param min_sleep: Smallest backoff sleep between retries, in seconds.
    :param max_sleep: Largest backoff sleep between retries, in seconds.
    :param decay_constant: Larger values approach ``max_sleep`` more slowly.
    :param max_attempts: Attempts per logical request, including the first.
    """

    storage_zone: str
    key: str = dataclasses.field(repr=False)
    root: str = ""
    endpoint_url: str = DEFAULT_ENDPOINT
    timeout: float = 60.0
    min_sleep: float = 0.01
    max_sleep: float = 60.0
    decay_constant: float = 1.0
    max_attempts: int = 10

    def validate(self) -> None:
        """Check required options and backoff bounds.

        :raises ConfigurationInvalid: If any option is unusable.
        """
        if not self.storage_zone or not self.storage_zone.strip():
            raise ConfigurationInvalid("storage zone not found")
        if not self.key or not self.key.strip():
            raise ConfigurationInvalid("access key not found", zone=self.storage_zone)
        if not self.endpoint_url.startswith(("http://", "https://")):
            raise ConfigurationInvalid(f"endpoint_url must be an http(s) URL, got {self.endpoint_url!r}")
        if self.timeout <= 0:
            raise ConfigurationInvalid("timeout must be positive", zone=self.storage_zone)
        if self.min_sleep <= 0 or self.max_sleep <= 0:
            raise ConfigurationInvalid("backoff sleeps must be positive", zone=self.storage_zone)
        if self.min_sleep > self.max_sleep:
            raise ConfigurationInvalid(
                f"min_sleep ({self.min_sleep}) exceeds max_sleep ({self.max_sleep})",
                zone=self.storage_zone,
            )
        if self.decay_constant <= 0:
            raise ConfigurationInvalid("decay_constant must be positive", zone=self.storage_zone)
        if self.max_attempts < 1:
            raise ConfigurationInvalid("max_attempts must be at least 1", zone=self.storage_zone)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ZoneConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        ``storagezone`` and ``access_key`` are accepted as aliases. When no key
        is given, ``ZONEFS_ACCESS_KEY`` is read from the environment.

        :raises ConfigurationInvalid: If required options are missing or unknown
            options are present.
        """
        fields = {f.name for f in dataclasses.fields(cls)}
        options: dict[str, object] = {}
        for raw_name, value in data.items():
            name = _ALIASES.get(str(raw_name), str(raw_name))
            if name not in fields:
                raise ConfigurationInvalid(f"Unknown option {raw_name!r}. Known options: {sorted(fields)}")
            options[name] = value

        if "key" not in options and (env_key := os.environ.get(_KEY_ENV)):
            options["key"] = env_key
        for required in ("storage_zone", "key"):
            if not options.get(required):
                raise ConfigurationInvalid(f"Missing required option {required!r}")

        try:
            config = cls(
                storage_zone=str(options.pop("storage_zone")),
                key=str(options.pop("key")),
                root=str(options.pop("root", "")),
                endpoint_url=str(options.pop("endpoint_url", DEFAULT_ENDPOINT)),
                **{name: _number(name, value) for name, value in options.items()},  # type: ignore[arg-type]
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationInvalid(f"Invalid option value: {exc}") from exc
        config.validate()
        return config


def _number(name: str, value: object) -> float | int:
    if name == "max_attempts":
        return int(value)  # type: ignore[call-overload,no-any-return]
    return float(value)  # type: ignore[arg-type]
