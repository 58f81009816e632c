from .credential_repository import CredentialRepository

__all__ = ["CredentialRepository"]
