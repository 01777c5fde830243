"""Replaceable collaborators: the document store and the identity provider."""

from .document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    StoreError,
    collection_path,
)
from .identity_provider import (
    AuthErrorCode,
    IdentityProvider,
    LocalIdentityProvider,
    ProviderAuthError,
    ProviderUser,
)
from .memory_store import InMemoryDocumentStore

__all__ = [
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "AuthErrorCode",
    "DocumentSnapshot",
    "DocumentStore",
    "IdentityProvider",
    "InMemoryDocumentStore",
    "LocalIdentityProvider",
    "ProviderAuthError",
    "ProviderUser",
    "StoreError",
    "collection_path",
]
