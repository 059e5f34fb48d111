"""
This module contains the session that exposes the SSH key operations for the
authenticated account.
"""

import functools
import logging

from . import errors
from .collection import KeysCollection, to_public_key
from .material import KeyPair
from .transport import Transport


logger = logging.getLogger(__name__)


def check_key_strength(f):
    """
    Decorator for session methods taking ``(name, key)`` that applies the local key
    policy of the session before the key is sent anywhere.
    """
    @functools.wraps(f)
    def wrapper(self, name, key, *args, **kwargs):
        if self.rsa_min_bits:
            to_public_key(key).check_strength(self.rsa_min_bits)
        return f(self, name, key, *args, **kwargs)
    return wrapper


class UserSession:
    """
    Session for the authenticated user of the platform, providing the operations on
    their SSH keys.

    Args:
        transport: The :py:class:`~.transport.Transport` to use.
        login: The login of the user. If not given, it is fetched when first needed.
        keygen: The :py:class:`~.keygen.Keygen` used by :py:meth:`create_key_pair`.
        rsa_min_bits: If given, RSA keys smaller than this are rejected before
                      being sent to the server.
    """
    def __init__(self, transport, login = None, keygen = None, rsa_min_bits = None):
        self._transport = transport
        self._login = login
        self.keygen = keygen
        self.rsa_min_bits = rsa_min_bits
        self._keys = KeysCollection(transport)

    @classmethod
    def connect(cls, url, username = None, password = None, token = None, **kwargs):
        """
        Returns a session for the platform at the given URL using the given
        credentials.

        Transport options, e.g. ``verify_ssl`` and ``timeout``, are passed to the
        :py:class:`~.transport.Transport`.
        """
        session_kwargs = {
            key: kwargs.pop(key)
            for key in ('keygen', 'rsa_min_bits')
            if key in kwargs
        }
        transport = Transport(url, username, password, token, **kwargs)
        return cls(transport, **session_kwargs)

    @classmethod
    def from_settings(cls, settings):
        """
        Returns a session configured from a :py:class:`~.settings.KeysSettings`.
        """
        return cls.connect(
            settings.URL,
            username = settings.USERNAME,
            password = settings.PASSWORD,
            token = settings.TOKEN,
            verify_ssl = settings.VERIFY_SSL,
            timeout = settings.TIMEOUT,
            api_version = settings.API_VERSION,
            keygen = settings.KEYGEN,
            rsa_min_bits = settings.RSA_MIN_BITS
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def login(self):
        """
        The login of the authenticated user.
        """
        if self._login is None:
            envelope = self._transport.get('/user')
            data = envelope.data if isinstance(envelope.data, dict) else {}
            try:
                self._login = data['login']
            except KeyError:
                raise errors.TransportError('User resource does not contain a login.')
        return self._login

    def _log(self, message, *args, level = logging.INFO, **kwargs):
        logger.log(level, '[%s] ' + message, self._login or '-', *args, **kwargs)

    def get_ssh_keys(self):
        """
        Returns the SSH keys for the user.
        """
        keys = self._keys.list()
        self._log('Found %s SSH keys', len(keys), level = logging.DEBUG)
        return keys

    def get_ssh_key_by_name(self, name):
        """
        Returns the SSH key with the given name, or ``None``.
        """
        return self._keys.get_by_name(name)

    def get_ssh_key_by_public_key(self, public_key):
        """
        Returns the SSH key with the given public key body, or ``None``.
        """
        return self._keys.get_by_public_key(public_key)

    def has_ssh_key_name(self, name):
        return self._keys.has_name(name)

    def has_ssh_public_key(self, public_key):
        return self._keys.has_public_key(public_key)

    @check_key_strength
    def add_ssh_key(self, name, key):
        """
        Adds an SSH key for the user.

        Args:
            name: The name for the key.
            key: A :py:class:`~.material.PublicKey` or :py:class:`~.material.KeyPair`.
                 For a key pair, only the public key is sent.

        Returns:
            The :py:class:`~.collection.SSHKey` for the new key.
        """
        self._log("Adding SSH key '%s'", name)
        return self._keys.add(name, key)

    @check_key_strength
    def put_ssh_key(self, name, key):
        """
        Creates or replaces the SSH key with the given name.

        Returns:
            The :py:class:`~.collection.SSHKey` for the key.
        """
        self._log("Putting SSH key '%s'", name)
        return self._keys.put(name, key)

    def delete_key(self, name):
        """
        Deletes the SSH key with the given name.
        """
        self._log("Deleting SSH key '%s'", name)
        self._keys.delete(name)

    def refresh(self):
        """
        Discards the cached keys so they are fetched again on next use.
        """
        self._log('Refreshing SSH keys', level = logging.DEBUG)
        self._keys.refresh()

    def create_key_pair(self, key_type, passphrase, private_key_path, public_key_path):
        """
        Generates a key pair on disk using the keygen of the session.

        The key pair is not added to the account.
        """
        return KeyPair.create(
            key_type,
            passphrase,
            private_key_path,
            public_key_path,
            keygen = self.keygen
        )

    def close(self):
        self._transport.close()
