"""Service locator for the process-wide store, disk storage and token issuer."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from server.repositories.base import Store
    from server.storage import DiskStorage
    from server.tokens import TokenIssuer

_store: Optional['Store'] = None
_storage: Optional['DiskStorage'] = None
_token_issuer: Optional['TokenIssuer'] = None


def configure(store: 'Store', storage: 'DiskStorage', token_issuer: 'TokenIssuer') -> None:
    """Install the components every request handler resolves."""
    global _store, _storage, _token_issuer
    _store = store
    _storage = storage
    _token_issuer = token_issuer


def is_configured() -> bool:
    return _store is not None and _storage is not None and _token_issuer is not None


def reset() -> None:
    global _store, _storage, _token_issuer
    _store = None
    _storage = None
    _token_issuer = None


def get_store() -> 'Store':
    if _store is None:
        raise RuntimeError("Store is not configured")
    return _store


def get_storage() -> 'DiskStorage':
    if _storage is None:
        raise RuntimeError("Disk storage is not configured")
    return _storage


def get_token_issuer() -> 'TokenIssuer':
    if _token_issuer is None:
        raise RuntimeError("Token issuer is not configured")
    return _token_issuer
