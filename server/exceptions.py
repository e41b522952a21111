"""Custom exception classes for the file sharing server."""


class SFSException(Exception):
    """
    Base exception class for all server errors.
    """
    pass


class InvalidInputError(SFSException):
    """
    Raised when request input is malformed or missing.
    """
    pass


class EmptyUsernameError(InvalidInputError):
    pass


class WeakPasswordError(InvalidInputError):
    pass


class UserAlreadyExistsError(InvalidInputError):
    """
    Raised when attempting to register a username that already exists.
    """
    pass


class UploadAbortedError(InvalidInputError):
    """
    Raised when the client goes away before the upload stream is complete.
    """
    pass


class AuthenticationError(SFSException):
    """
    Base class for every failure that maps to 401.
    """
    pass


class InvalidCredentialsError(AuthenticationError):
    """
    Raised when login credentials are invalid. Unknown usernames, wrong
    passwords and deactivated accounts all raise this same error.
    """
    pass


class InvalidTokenError(AuthenticationError):
    """
    Raised when an access token fails verification.
    """
    pass


class ExpiredTokenError(InvalidTokenError):
    pass


class MalformedTokenError(InvalidTokenError):
    """
    Raised when a token cannot be decoded or its signature does not match.
    """
    pass


class RefreshTokenReusedError(AuthenticationError):
    """
    Raised when a refresh token is unknown or has already been rotated.
    """
    pass


class NotFoundError(SFSException):
    """
    Raised when a resource does not exist or the caller has no right to see it.
    Both cases produce the same error on purpose.
    """
    pass


class PermissionConflictError(SFSException):
    """
    Raised when a file is already shared with the target user.
    """
    pass


class PayloadTooLargeError(SFSException):
    """
    Raised when an upload exceeds the configured size cap.
    """
    pass


class StorageError(SFSException):
    """
    Raised when the database or the upload directory fails unexpectedly.
    """
    pass
