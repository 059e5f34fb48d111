"""
Client for managing the SSH public keys of a platform-as-a-service account.
"""

from .collection import KeysCollection, SSHKey
from .errors import (
    Error,
    InvalidKeyFormat,
    WeakKeyError,
    KeyFileError,
    KeygenFailed,
    SSHKeyError,
    DuplicateKeyName,
    KeyDestroyed,
    EndpointError,
    DuplicateKeyContent,
    InvalidKey,
    NoSuchKey,
    TransportError,
    AuthenticationError,
    CommunicationError
)
from .keygen import Keygen, SshKeygen, CryptographyKeygen
from .material import SSHKeyType, PublicKey, KeyPair
from .session import UserSession
from .transport import Transport


__version__ = '0.1.0'
