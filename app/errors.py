class EchoVaultError(Exception):
    """Base exception for EchoVault service errors"""
    status_code = 500


class NotFoundError(EchoVaultError):
    """Message, condition, recipient or delivery does not exist"""
    status_code = 404


class AccessDeniedError(EchoVaultError):
    """Caller is not allowed to act on the resource"""
    status_code = 403


class AuthenticationError(EchoVaultError):
    """Missing or invalid credentials"""
    status_code = 401


class InvalidPinError(EchoVaultError):
    """PIN supplied for a protected message did not match"""
    status_code = 401


class ConfigKeyNotAllowedError(EchoVaultError):
    """get-app-config was asked for a key outside the allow-list"""
    status_code = 403


class ValidationError(EchoVaultError):
    """Request data failed validation"""
    status_code = 400


class DeliveryError(EchoVaultError):
    """A messaging provider refused or failed to deliver"""
    pass
