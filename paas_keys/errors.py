"""
This module defines the exceptions that can be raised by the SSH key client.
"""


class Error(Exception):
    """
    Base class for all other errors in this module.
    """


class InvalidKeyFormat(Error, ValueError):
    """
    Raised when a public key is malformed or has an unknown key type.
    """


class WeakKeyError(InvalidKeyFormat):
    """
    Raised when a public key is well-formed but rejected by the local key policy.
    """


class KeyFileError(Error, OSError):
    """
    Raised when a key file cannot be read or written.
    """
    def __init__(self, message, path = None):
        super().__init__(message)
        self.path = path


class KeygenFailed(Error, RuntimeError):
    """
    Raised when the key pair generator fails.
    """
    def __init__(self, message, returncode = None, stderr = None):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class SSHKeyError(Error, RuntimeError):
    """
    Base class for errors detected by the client about a particular key.
    """
    def __init__(self, message, name = None):
        super().__init__(message)
        self.name = name


class DuplicateKeyName(SSHKeyError):
    """
    Raised when adding a key whose name is already in use.

    ``status_code`` is ``None`` when the duplicate was detected without
    contacting the server.
    """
    def __init__(self, name, status_code = None, message = None):
        super().__init__(
            message or f"SSH key with name '{name}' already exists.",
            name
        )
        self.status_code = status_code


class KeyDestroyed(SSHKeyError):
    """
    Raised when an operation is attempted on a key that has been destroyed.
    """
    def __init__(self, name):
        super().__init__(f"SSH key '{name}' has been destroyed.", name)


class EndpointError(Error, RuntimeError):
    """
    Raised when the server responds with a non-success status.

    Args:
        message: The error message, usually taken from the server response.
        status_code: The HTTP status code of the response.
        url: The URL that was requested.
        messages: The messages from the response envelope.
    """
    def __init__(self, message, status_code = None, url = None, messages = ()):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.messages = tuple(messages)

    @property
    def exit_code(self):
        """
        The first exit code reported by the server, or ``None``.
        """
        return next(
            (m.exit_code for m in self.messages if m.exit_code is not None),
            None
        )


class DuplicateKeyContent(EndpointError):
    """
    Raised when the server rejects a public key that is registered under another name.
    """


class InvalidKey(EndpointError):
    """
    Raised when the server rejects the name, type or content of a key.
    """


class NoSuchKey(EndpointError):
    """
    Raised when the server reports that a key does not exist.
    """
    def __init__(self, message, status_code = 404, url = None, messages = (), name = None):
        super().__init__(message, status_code, url, messages)
        self.name = name


class TransportError(Error, RuntimeError):
    """
    Raised when the server cannot be talked to or its response cannot be understood.
    """


class AuthenticationError(TransportError):
    """
    Raised when the server rejects the credentials of the session.
    """
    def __init__(self, message, status_code = None):
        super().__init__(message)
        self.status_code = status_code


class CommunicationError(TransportError):
    """
    Raised when an unexpected communication problem occurs.
    """
