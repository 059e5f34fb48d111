"""
This module contains the in-memory model of the SSH keys for an account.

The :py:class:`KeysCollection` mirrors the keys held by the server and the
:py:class:`SSHKey` handles that it returns issue their updates through it, so that
local state only changes once the server has acknowledged a change.
"""

import functools
import logging
import threading
from urllib.parse import quote

from . import errors
from .material import PublicKey, SSHKeyType
from .transport import EXIT_CODE_DUPLICATE_NAME


logger = logging.getLogger(__name__)


def to_public_key(key, key_type = None):
    """
    Returns a :py:class:`~.material.PublicKey` for the given key.

    The key can be a :py:class:`~.material.PublicKey`, a
    :py:class:`~.material.KeyPair`, a string in OpenSSH format or a bare body. A bare
    body takes the given key type.
    """
    if hasattr(key, 'as_public_key'):
        return key.as_public_key()
    if not isinstance(key, str):
        raise TypeError(f"Expected a public key, got {type(key).__name__}.")
    if len(key.split()) > 1:
        return PublicKey.from_string(key)
    if key_type is None:
        raise errors.InvalidKeyFormat('A key type is required for a bare public key body.')
    return PublicKey(key_type, key)


def _body(key):
    if hasattr(key, 'as_public_key'):
        return key.as_public_key().body
    fields = key.split()
    # For an OpenSSH formatted key, the body is the second field
    return fields[1] if len(fields) > 1 else key.strip()


def forget_missing_keys(f):
    """
    Decorator for collection methods that act on a single key, given as a handle or
    a name, that drops the key and destroys its handle when the server reports that
    it no longer exists.
    """
    @functools.wraps(f)
    def wrapper(self, key, *args, **kwargs):
        try:
            return f(self, key, *args, **kwargs)
        except errors.NoSuchKey as exc:
            name = key.name if isinstance(key, SSHKey) else key
            exc.name = name
            self._forget(name, key if isinstance(key, SSHKey) else None)
            raise
    return wrapper


class SSHKey:
    """
    Handle for an SSH key held by the server.

    Handles are created by a :py:class:`KeysCollection`. Changes made using a
    handle are sent to the server first and only applied locally if the server
    accepts them.
    """
    def __init__(self, collection, name, key_type, public_key):
        self._collection = collection
        self._name = name
        self._key_type = SSHKeyType.from_wire(key_type)
        self._public_key = public_key
        self._destroyed = False

    @property
    def name(self):
        return self._name

    @property
    def key_type(self):
        with self._collection._lock:
            return self._key_type

    @property
    def public_key(self):
        """
        The body of the public key.
        """
        with self._collection._lock:
            return self._public_key

    @property
    def is_destroyed(self):
        with self._collection._lock:
            return self._destroyed

    def get_public_key_object(self):
        """
        Returns the key as a :py:class:`~.material.PublicKey`.
        """
        with self._collection._lock:
            return PublicKey(self._key_type, self._public_key)

    def _check_live(self):
        if self.is_destroyed:
            raise errors.KeyDestroyed(self._name)

    def _set(self, key_type, public_key):
        self._key_type = SSHKeyType.from_wire(key_type)
        self._public_key = public_key

    def set_public_key(self, public_key):
        """
        Replaces the public key on the server, then locally.

        If the new key is a bare body, the current key type is kept.
        """
        self._check_live()
        self._collection._update_key(self, to_public_key(public_key, self.key_type))
        return self

    def set_key_type(self, key_type, public_key):
        """
        Replaces the key type and public key body together.
        """
        self._check_live()
        self._collection._update_key(self, PublicKey(key_type, public_key))
        return self

    def refresh(self):
        """
        Re-reads the key from the server.
        """
        self._check_live()
        self._collection._refresh_key(self)
        return self

    def destroy(self):
        """
        Deletes the key from the server. The handle is unusable afterwards.
        """
        self._check_live()
        self._collection._destroy_key(self)

    def __eq__(self, other):
        if not isinstance(other, SSHKey):
            return NotImplemented
        return (
            self.name == other.name and
            self.key_type is other.key_type and
            self.public_key == other.public_key
        )

    def __hash__(self):
        return hash(self._name)

    def __repr__(self):
        return "{}(name={!r}, key_type={}, destroyed={})".format(
            type(self).__name__,
            self._name,
            self._key_type.wire,
            self._destroyed
        )


class KeysCollection:
    """
    Cached view of the SSH keys for an account.

    The keys are fetched on first use and the cached keys are used until
    :py:meth:`refresh` is called. Successful changes are applied to the cache in
    place. Access to the cache is serialised, but the lock is not held while
    talking to the server.

    Args:
        transport: The :py:class:`~.transport.Transport` to use.
        path: The path of the keys resource.
    """
    def __init__(self, transport, path = '/user/keys'):
        self._transport = transport
        self._path = path.rstrip('/')
        self._lock = threading.RLock()
        self._loaded = False
        self._entries = []

    def _key_path(self, name):
        return '{}/{}'.format(self._path, quote(name, safe = ''))

    def _make_key(self, data):
        return SSHKey(self, data['name'], data['type'], data['content'])

    def _snapshot(self):
        # Returns the current entries, fetching them first if required
        with self._lock:
            if self._loaded:
                return list(self._entries)
        envelope = self._transport.get(self._path)
        keys = [self._make_key(data) for data in envelope.data or []]
        with self._lock:
            # Another thread may have loaded the keys while we were fetching
            if not self._loaded:
                logger.info('Loaded %s SSH keys', len(keys))
                self._entries = keys
                self._loaded = True
            return list(self._entries)

    def _find(self, name):
        return next((key for key in self._entries if key.name == name), None)

    def _publish(self, key):
        # The key may be a stale handle, so apply the change to the cached one too
        with self._lock:
            # A key deleted while its request was in flight stays deleted
            if key._destroyed:
                return key
            cached = self._find(key.name) if self._loaded else None
            if cached is None:
                if self._loaded:
                    self._entries.append(key)
                return key
            if cached is not key:
                cached._set(key._key_type, key._public_key)
            return cached

    def _forget(self, name, key = None):
        with self._lock:
            for cached in self._entries:
                if cached.name == name:
                    cached._destroyed = True
            self._entries = [cached for cached in self._entries if cached.name != name]
            if key is not None:
                key._destroyed = True

    def _result(self, envelope, name, public_key):
        # Use the key returned by the server if there is one
        data = envelope.data if envelope and isinstance(envelope.data, dict) else {}
        return (
            data.get('name', name),
            data.get('type', public_key.key_type.wire),
            data.get('content', public_key.body)
        )

    def list(self):
        """
        Returns a tuple of the keys for the account.
        """
        return tuple(self._snapshot())

    def get_by_name(self, name):
        """
        Returns the key with the given name, or ``None``.
        """
        return next((key for key in self._snapshot() if key.name == name), None)

    def get_by_public_key(self, public_key):
        """
        Returns the key with the given public key body, or ``None``.

        The key can be given as a bare body, in OpenSSH format or as a key object.
        Only the body is compared.
        """
        body = _body(public_key)
        return next((key for key in self._snapshot() if key.public_key == body), None)

    def has_name(self, name):
        return self.get_by_name(name) is not None

    def has_public_key(self, public_key):
        return self.get_by_public_key(public_key) is not None

    def add(self, name, key):
        """
        Adds a new key with the given name and returns the handle for it.

        Raises:
            DuplicateKeyName: If a key with the name already exists, either in the
                              cache or on the server.
        """
        public_key = to_public_key(key)
        if any(cached.name == name for cached in self._snapshot()):
            raise errors.DuplicateKeyName(name)
        try:
            envelope = self._transport.post(
                self._path,
                json = {
                    'name': name,
                    'type': public_key.key_type.wire,
                    'content': public_key.body,
                }
            )
        except errors.DuplicateKeyContent:
            raise
        except errors.EndpointError as exc:
            # The server is the arbiter for duplicate names added concurrently
            if (
                exc.status_code == 409 or
                (exc.status_code == 422 and exc.exit_code == EXIT_CODE_DUPLICATE_NAME)
            ):
                raise errors.DuplicateKeyName(name, exc.status_code, str(exc))
            raise
        return self._publish(SSHKey(self, *self._result(envelope, name, public_key)))

    def put(self, name, key):
        """
        Creates or replaces the key with the given name and returns the handle for it.

        Unlike :py:meth:`add`, there is no local check for an existing key and any
        rejection from the server is raised as it is.
        """
        public_key = to_public_key(key)
        # Make sure the cache is populated so the result can be applied to it
        self._snapshot()
        envelope = self._transport.put(
            self._key_path(name),
            json = {
                'type': public_key.key_type.wire,
                'content': public_key.body,
            }
        )
        return self._publish(SSHKey(self, *self._result(envelope, name, public_key)))

    @forget_missing_keys
    def delete(self, name):
        """
        Deletes the key with the given name.

        Raises:
            NoSuchKey: If the server does not have a key with the name.
        """
        self._transport.delete(self._key_path(name))
        self._forget(name)

    def refresh(self):
        """
        Marks the cache as stale, so the keys are fetched again on next use.
        """
        with self._lock:
            self._loaded = False

    def _apply(self, key, key_type, content):
        # Update the handle and the cache together, unless the key went meanwhile
        with self._lock:
            if key._destroyed:
                return
            key._set(key_type, content)
            self._publish(key)

    @forget_missing_keys
    def _update_key(self, key, public_key):
        try:
            envelope = self._transport.put(
                self._key_path(key.name),
                json = {
                    'type': public_key.key_type.wire,
                    'content': public_key.body,
                },
                # Only update the key if it still exists
                headers = {'If-Match': '*'}
            )
        except errors.EndpointError as exc:
            if exc.status_code == 412:
                raise errors.NoSuchKey(
                    str(exc),
                    exc.status_code,
                    exc.url,
                    exc.messages,
                    name = key.name
                )
            raise
        _, key_type, content = self._result(envelope, key.name, public_key)
        self._apply(key, key_type, content)

    @forget_missing_keys
    def _refresh_key(self, key):
        envelope = self._transport.get(self._key_path(key.name))
        _, key_type, content = self._result(envelope, key.name, key.get_public_key_object())
        self._apply(key, key_type, content)

    @forget_missing_keys
    def _destroy_key(self, key):
        self._transport.delete(self._key_path(key.name))
        self._forget(key.name, key)

    def __len__(self):
        return len(self._snapshot())

    def __iter__(self):
        return iter(self._snapshot())

    def __contains__(self, name):
        return self.has_name(name)
