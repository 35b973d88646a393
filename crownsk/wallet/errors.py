class WalletError(Exception):
    """Base exception for wallet vault errors"""
    pass


class ValidationError(WalletError, ValueError):
    """Raised when a private key or password fails validation"""
    pass


class AlreadyExistsError(WalletError):
    """Raised when creating a wallet over an existing vault"""
    pass


class NotFoundError(WalletError):
    """Raised when the vault (or one of its files) does not exist"""
    pass


class InvalidPasswordError(WalletError):
    """Raised when a vault cannot be opened with the given password"""
    pass


class StorageError(WalletError):
    """Raised for filesystem failures while reading or writing the vault"""
    pass


class CredentialUnavailableError(WalletError):
    """Raised when a signature is requested while the wallet is locked"""
    pass


class WalletConfigurationError(WalletError):
    """Raised when wallet settings are missing or invalid"""
    pass


class AuthenticationError(WalletError):
    """Raised by the cipher when the integrity tag does not verify"""
    pass


class MalformedRecordError(WalletError):
    """Raised when an encrypted record cannot be parsed"""
    pass
