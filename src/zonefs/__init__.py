"""Hierarchical filesystem over a flat, HTTP-addressed storage zone."""

from zonefs._cache import ListingCache
from zonefs._capabilities import Capability, CapabilitySet, HashType
from zonefs._config import DEFAULT_ENDPOINT, ZoneConfig
from zonefs._context import CallContext
from zonefs._errors import (
    CapabilityNotSupported,
    ConfigurationInvalid,
    DirectoryNotFound,
    InvalidPath,
    IsDirectory,
    ModTimeUnsupported,
    NotFound,
    ObjectNotFound,
    OperationCancelled,
    RateLimited,
    RemoteRejected,
    TransientNetwork,
    UploadFailed,
    ZoneFsError,
)
from zonefs._fs import ZoneFs
from zonefs._models import ZERO_TIME, DirectoryEntry, DirectoryListing, FileObject, ListingRecord
from zonefs._options import HeaderOption, RangeOption, SeekOption
from zonefs._path import PathResolver
from zonefs._transport import Pacer

__version__ = "0.1.0"

__all__ = [
    # Core
    "ZoneFs",
    "ZoneConfig",
    "CallContext",
    "DEFAULT_ENDPOINT",
    # Building blocks
    "PathResolver",
    "Pacer",
    "ListingCache",
    # Models
    "ListingRecord",
    "DirectoryListing",
    "FileObject",
    "DirectoryEntry",
    "ZERO_TIME",
    # Open options
    "RangeOption",
    "SeekOption",
    "HeaderOption",
    # Capabilities
    "Capability",
    "CapabilitySet",
    "HashType",
    # Errors
    "ZoneFsError",
    "ConfigurationInvalid",
    "InvalidPath",
    "NotFound",
    "DirectoryNotFound",
    "ObjectNotFound",
    "IsDirectory",
    "RemoteRejected",
    "UploadFailed",
    "TransientNetwork",
    "RateLimited",
    "CapabilityNotSupported",
    "ModTimeUnsupported",
    "OperationCancelled",
    # Version
    "__version__",
]
