"""Exception hierarchy for the bank API."""


class BankAPIError(Exception):
    """Base exception for all bank API errors."""


class ConfigurationError(BankAPIError):
    """Raised when required settings are missing or invalid."""


class StoreError(BankAPIError):
    """Raised when the account store fails (connectivity, constraints)."""


class AccountNotFoundError(StoreError):
    """Raised when no account matches the given id or number."""


class AuthenticationError(BankAPIError):
    """Raised when a token cannot be verified."""


class CredentialError(BankAPIError):
    """Raised when a password cannot be hashed."""
