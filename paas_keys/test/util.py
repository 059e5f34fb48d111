"""
This module provides utilities for testing the client against an in-process fake
of the platform's REST API.
"""

import base64
import binascii
import hashlib
import json
import struct
from urllib.parse import urlsplit, unquote

import requests
from requests.adapters import BaseAdapter

from ..session import UserSession
from ..transport import Transport


#: The base URL used for the fake platform
BASE_URL = 'https://paas.test/broker/rest'

_KEY_TYPES = ('ssh-rsa', 'ssh-dss')


def make_body(wire_type, seed):
    """
    Returns a base64 body shaped like an OpenSSH public key blob of the given type.

    Different seeds give different bodies.
    """
    name = wire_type.encode()
    blob = struct.pack('>I', len(name)) + name + hashlib.sha256(seed.encode()).digest() * 8
    return base64.b64encode(blob).decode()


def _message(text, exit_code = None, field = None, severity = 'error'):
    return dict(text = text, severity = severity, exit_code = exit_code, field = field)


class FakeBroker(BaseAdapter):
    """
    Transport adapter for ``requests`` that answers requests for the user and SSH
    keys resources from an in-memory store.

    ``keys`` maps key name to a ``(type, content)`` tuple, in creation order, and
    can be changed directly by tests to simulate changes made by other clients.
    """
    def __init__(self, login = 'alice', keys = None):
        super().__init__()
        self.login = login
        self.keys = dict(keys or {})
        #: The (method, path) of every request received
        self.requests = []
        #: If set, this exception is raised instead of answering the next request
        self.fail_with = None
        #: The status code used to reject a duplicate name when adding a key
        self.duplicate_name_status = 409

    def requests_for(self, method):
        return [path for m, path in self.requests if m == method]

    def _response(self, request, status_code, data = None, messages = (), raw = None):
        response = requests.Response()
        response.status_code = status_code
        response.url = request.url
        response.request = request
        response.encoding = 'utf-8'
        response.headers['Content-Type'] = 'application/json'
        if raw is not None:
            response._content = raw
        else:
            response._content = json.dumps({
                'status': 'ok' if status_code < 400 else 'error',
                'data': data,
                'messages': list(messages),
            }).encode()
        return response

    def _key(self, name):
        key_type, content = self.keys[name]
        return dict(name = name, type = key_type, content = content)

    def _content_in_use(self, content):
        return any(c == content for _, c in self.keys.values())

    def _invalid(self, request, key_type, content):
        if key_type not in _KEY_TYPES:
            return self._response(request, 422, messages = [
                _message(f"Invalid key type: {key_type}", 116, 'type')
            ])
        try:
            base64.b64decode(content or '', validate = True)
        except (binascii.Error, ValueError):
            content = None
        if not content:
            return self._response(request, 422, messages = [
                _message('Invalid key content.', 108, 'content')
            ])
        return None

    def send(self, request, stream = False, timeout = None, verify = True, cert = None, proxies = None):
        path = urlsplit(request.url).path
        prefix = urlsplit(BASE_URL).path
        path = path[len(prefix):] if path.startswith(prefix) else path
        self.requests.append((request.method, path))
        if self.fail_with is not None:
            exc, self.fail_with = self.fail_with, None
            raise exc
        if 'Authorization' not in request.headers:
            return self._response(request, 401, raw = b'Unauthorized')
        body = json.loads(request.body) if request.body else {}
        parts = path.strip('/').split('/')
        if parts == ['user'] and request.method == 'GET':
            return self._response(request, 200, dict(login = self.login))
        if parts == ['user', 'keys']:
            if request.method == 'GET':
                return self._response(request, 200, [self._key(n) for n in self.keys])
            if request.method == 'POST':
                return self._create(request, body)
        if len(parts) == 3 and parts[:2] == ['user', 'keys']:
            name = unquote(parts[2])
            if request.method == 'GET':
                if name not in self.keys:
                    return self._not_found(request, name)
                return self._response(request, 200, self._key(name))
            if request.method == 'PUT':
                return self._put(request, name, body)
            if request.method == 'DELETE':
                if name not in self.keys:
                    return self._not_found(request, name)
                del self.keys[name]
                return self._response(request, 200, None, [
                    _message(f"Deleted SSH key {name}", severity = 'info')
                ])
        return self._response(request, 405, raw = b'Method not allowed')

    def _not_found(self, request, name):
        return self._response(request, 404, messages = [
            _message(f"SSH key '{name}' not found.", 118)
        ])

    def _create(self, request, body):
        name = body.get('name')
        if name in self.keys:
            return self._response(request, self.duplicate_name_status, messages = [
                _message(
                    f"SSH key with name {name} already exists. "
                    "Use a different name or delete conflicting key and retry.",
                    120,
                    'name'
                )
            ])
        invalid = self._invalid(request, body.get('type'), body.get('content'))
        if invalid is not None:
            return invalid
        if self._content_in_use(body['content']):
            return self._content_conflict(request)
        self.keys[name] = (body['type'], body['content'])
        return self._response(request, 201, self._key(name))

    def _put(self, request, name, body):
        if name not in self.keys and request.headers.get('If-Match') == '*':
            return self._response(request, 412, messages = [
                _message(f"SSH key '{name}' not found.", 118)
            ])
        invalid = self._invalid(request, body.get('type'), body.get('content'))
        if invalid is not None:
            return invalid
        if self._content_in_use(body['content']):
            return self._content_conflict(request)
        created = name not in self.keys
        self.keys[name] = (body['type'], body['content'])
        return self._response(request, 201 if created else 200, self._key(name))

    def _content_conflict(self, request):
        return self._response(request, 409, messages = [
            _message(
                'Given public key is already in use. '
                'Use different key or delete conflicting key and retry.',
                121,
                'content'
            )
        ])

    def close(self):
        pass


def make_transport(broker, username = 'alice', password = 'secret'):
    """
    Returns a transport whose requests are answered by the given fake broker.
    """
    transport = Transport(BASE_URL, username, password)
    transport.session.mount('https://paas.test/', broker)
    return transport


def make_session(broker = None, **kwargs):
    """
    Returns a ``(session, broker)`` tuple for a session backed by a fake broker.
    """
    broker = broker if broker is not None else FakeBroker()
    return UserSession(make_transport(broker), **kwargs), broker
