"""Service layer exports."""

from .credential_store import EncryptedCredentialStore
from .credentials import AuthorizationRequest, CredentialManager, CredentialStatus
from .pkce import PKCEPair, generate_pkce
from .token_cipher import TokenCipherService

__all__ = [
    "AuthorizationRequest",
    "CredentialManager",
    "CredentialStatus",
    "EncryptedCredentialStore",
    "PKCEPair",
    "TokenCipherService",
    "generate_pkce",
]
