"""
This module defines the key material handled by the client: key types, public keys
and key pairs on disk.
"""

import base64
import binascii
import enum
import hashlib
import logging
import os
from dataclasses import dataclass, field

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_ssh_public_key

from .errors import InvalidKeyFormat, WeakKeyError, KeyFileError


logger = logging.getLogger(__name__)


@enum.unique
class SSHKeyType(enum.Enum):
    """
    The SSH key types understood by the platform, with their OpenSSH wire names.
    """
    SSH_RSA = 'ssh-rsa'
    SSH_DSA = 'ssh-dss'

    @property
    def wire(self):
        """
        The OpenSSH name of the key type, e.g. ``ssh-rsa``.
        """
        return self.value

    @classmethod
    def from_wire(cls, value):
        """
        Returns the key type for the given OpenSSH name.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidKeyFormat(f"Unknown SSH key type: {value!r}")


def _check_body(body):
    if not body:
        raise InvalidKeyFormat('Public key body is empty.')
    try:
        base64.b64decode(body, validate = True)
    except (binascii.Error, ValueError):
        raise InvalidKeyFormat('Public key body is not valid base64.')


@dataclass(frozen = True)
class PublicKey:
    """
    Represents an SSH public key.

    The body is the base64 payload of the key, without the type prefix or comment.
    """
    #: The type of the key
    key_type: SSHKeyType
    #: The base64-encoded body of the key
    body: str
    #: The comment that followed the key in its file, if any
    comment: str = field(default = None, compare = False)

    def __post_init__(self):
        # The dataclass is frozen, so normalise using object.__setattr__
        object.__setattr__(self, 'key_type', SSHKeyType.from_wire(self.key_type))
        body = self.body.strip() if isinstance(self.body, str) else None
        _check_body(body)
        object.__setattr__(self, 'body', body)

    @classmethod
    def from_string(cls, data):
        """
        Parses a public key in OpenSSH authorized keys format, i.e.
        ``<wire-type> <base64> [comment]``.

        Only the first non-empty line is considered.
        """
        line = next((l for l in data.splitlines() if l.strip()), '')
        fields = line.split(None, 2)
        if len(fields) < 2:
            raise InvalidKeyFormat('Public key must contain a key type and a body.')
        comment = fields[2].strip() if len(fields) > 2 else None
        return cls(SSHKeyType.from_wire(fields[0]), fields[1], comment or None)

    @classmethod
    def from_file(cls, path):
        """
        Reads a public key from the given file.
        """
        try:
            with open(path, encoding = 'utf-8') as fh:
                data = fh.read()
        except UnicodeDecodeError:
            raise InvalidKeyFormat(f"Public key file {path} is not valid UTF-8.")
        except OSError as exc:
            raise KeyFileError(f"Could not read public key file {path}: {exc}", path)
        return cls.from_string(data)

    @property
    def fingerprint(self):
        """
        The MD5 fingerprint of the key as a hex string.
        """
        return hashlib.md5(base64.b64decode(self.body)).hexdigest()

    def as_public_key(self):
        return self

    def to_string(self):
        """
        Returns the key in OpenSSH format, without the comment.
        """
        return f"{self.key_type.wire} {self.body}"

    def write(self, path):
        """
        Writes the key to the given file in OpenSSH format.
        """
        try:
            with open(path, 'w', encoding = 'utf-8') as fh:
                fh.write(self.to_string() + '\n')
        except OSError as exc:
            raise KeyFileError(f"Could not write public key file {path}: {exc}", path)

    def check_strength(self, rsa_min_bits = None):
        """
        Checks that the key can be loaded and, for RSA keys, that it has at least
        ``rsa_min_bits`` bits.
        """
        try:
            public_key = load_ssh_public_key(self.to_string().encode())
        except (ValueError, UnsupportedAlgorithm):
            raise InvalidKeyFormat('Not a valid SSH public key.')
        if (
            rsa_min_bits and
            isinstance(public_key, rsa.RSAPublicKey) and
            public_key.key_size < rsa_min_bits
        ):
            raise WeakKeyError(
                "RSA keys must have a minimum of {} bits ({} given).".format(
                    rsa_min_bits,
                    public_key.key_size
                )
            )
        return self

    def __str__(self):
        return self.to_string()


@dataclass(frozen = True)
class KeyPair:
    """
    Represents an SSH key pair stored on disk.

    The files are owned by the caller. Only the public half is ever sent to the
    platform.
    """
    #: The path to the private key
    private_key_path: str
    #: The path to the public key
    public_key_path: str
    #: The type of the key pair
    key_type: SSHKeyType
    #: The public key read from ``public_key_path``
    public_key: PublicKey
    #: The passphrase protecting the private key, if known
    passphrase: str = field(default = None, repr = False)

    @classmethod
    def create(
        cls,
        key_type,
        passphrase,
        private_key_path,
        public_key_path,
        keygen = None
    ):
        """
        Generates a new key pair using the given keygen and returns it.

        Args:
            key_type: The :py:class:`SSHKeyType` (or its wire name) to generate.
            passphrase: The passphrase for the private key. May be empty.
            private_key_path: Where to write the private key.
            public_key_path: Where to write the public key.
            keygen: The :py:class:`~.keygen.Keygen` to use. Defaults to
                    :py:class:`~.keygen.SshKeygen`.
        """
        # Imported here as the keygen module needs the types in this one
        from .keygen import SshKeygen
        key_type = SSHKeyType.from_wire(key_type)
        keygen = keygen or SshKeygen()
        logger.info(
            'Generating %s key pair at %s',
            key_type.wire,
            os.fspath(private_key_path)
        )
        keygen.generate(key_type, passphrase or '', private_key_path, public_key_path)
        public_key = PublicKey.from_file(public_key_path)
        if public_key.key_type is not key_type:
            raise InvalidKeyFormat(
                f"Expected a {key_type.wire} key but found {public_key.key_type.wire}."
            )
        return cls(
            os.fspath(private_key_path),
            os.fspath(public_key_path),
            key_type,
            public_key,
            passphrase or ''
        )

    @classmethod
    def load(cls, private_key_path, public_key_path, passphrase = None):
        """
        Returns a key pair for existing key files.
        """
        if not os.path.isfile(private_key_path):
            raise KeyFileError(
                f"Private key file {private_key_path} does not exist.",
                private_key_path
            )
        public_key = PublicKey.from_file(public_key_path)
        return cls(
            os.fspath(private_key_path),
            os.fspath(public_key_path),
            public_key.key_type,
            public_key,
            passphrase
        )

    @property
    def body(self):
        return self.public_key.body

    def as_public_key(self):
        return self.public_key
