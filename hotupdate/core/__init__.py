# Package initializer for hotupdate/core
from hotupdate.core.controller import SyncController, SyncOutcome
from hotupdate.core.errors import (
    AssetDecompressFailed,
    AssetTransportFailed,
    AssetVerifyRejected,
    FetchErrorKind,
    InvalidStateError,
    ManifestFetchFailed,
    ManifestMissing,
    PersistFailed,
    SyncError,
    TransportError,
)
from hotupdate.core.manifest import AssetEntry, Manifest, ManifestStore
from hotupdate.core.search_paths import (
    ConfigSearchPathStorage,
    SearchPathPersister,
    SearchPathStorage,
)
from hotupdate.core.session import ProgressEvent, SessionState, SyncPhase, UpdateSession
from hotupdate.core.verifier import AssetVerifier, ChecksumVerifier, create_verifier

__all__ = [
    "SyncController",
    "SyncOutcome",
    "AssetDecompressFailed",
    "AssetTransportFailed",
    "AssetVerifyRejected",
    "FetchErrorKind",
    "InvalidStateError",
    "ManifestFetchFailed",
    "ManifestMissing",
    "PersistFailed",
    "SyncError",
    "TransportError",
    "AssetEntry",
    "Manifest",
    "ManifestStore",
    "ConfigSearchPathStorage",
    "SearchPathPersister",
    "SearchPathStorage",
    "ProgressEvent",
    "SessionState",
    "SyncPhase",
    "UpdateSession",
    "AssetVerifier",
    "ChecksumVerifier",
    "create_verifier",
]
