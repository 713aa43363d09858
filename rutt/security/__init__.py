from .credentials import CredentialProvider, Credentials

__all__ = ["CredentialProvider", "Credentials"]
