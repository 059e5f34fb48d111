"""
This module contains the HTTP transport used to talk to the platform's REST API.
"""

import logging
import re
from dataclasses import dataclass, field

import requests

from . import errors


logger = logging.getLogger(__name__)


#: Broker exit code reported when a key name is already in use
EXIT_CODE_DUPLICATE_NAME = 120
#: Broker exit code reported when key content is already in use
EXIT_CODE_DUPLICATE_CONTENT = 121


@dataclass(frozen = True)
class Message:
    """
    Represents a message returned by the server in a response envelope.
    """
    #: The message text
    text: str
    #: The severity of the message, e.g. ``info`` or ``error``
    severity: str = None
    #: The exit code associated with the message, if any
    exit_code: int = None
    #: The request field that the message refers to, if any
    field: str = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            data.get('text') or '',
            data.get('severity'),
            data.get('exit_code'),
            data.get('field')
        )


@dataclass(frozen = True)
class Envelope:
    """
    Represents a decoded response from the server.
    """
    #: The HTTP status code of the response
    status_code: int
    #: The status reported in the envelope, e.g. ``ok`` or ``created``
    status: str = None
    #: The payload of the response
    data: object = None
    #: The messages from the response
    messages: tuple = field(default_factory = tuple)

    @classmethod
    def from_response(cls, response, body):
        if not isinstance(body, dict):
            # Not an envelope, so treat the whole body as the data
            return cls(response.status_code, None, body)
        return cls(
            response.status_code,
            body.get('status'),
            body.get('data'),
            tuple(
                Message.from_dict(m)
                for m in body.get('messages') or []
                if isinstance(m, dict)
            )
        )

    @property
    def message(self):
        """
        The text of all the messages in the envelope, joined into one string.
        """
        return ' '.join(m.text for m in self.messages if m.text)


def _decode(response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        raise errors.TransportError(
            f"Could not decode response from {response.url} "
            f"(status {response.status_code})."
        )


def extract_error_message(response, envelope):
    """
    Extract an error message from the given error response and return it.
    """
    if envelope is not None and envelope.message:
        return envelope.message
    return response.text or response.reason or f"HTTP {response.status_code}"


def check_response(response):
    """
    Checks a response from the server and returns the decoded :py:class:`Envelope`
    if the status code is 2xx.

    If the status code is not 2xx, a relevant exception is raised.
    """
    status_code = response.status_code
    if status_code in (401, 403):
        raise errors.AuthenticationError(
            'Authentication failed.' if status_code == 401 else 'Permission denied.',
            status_code
        )
    # Error responses without a JSON body still get a message from the raw text
    try:
        envelope = Envelope.from_response(response, _decode(response))
    except errors.TransportError:
        if 200 <= status_code < 300:
            raise
        envelope = None
    if 200 <= status_code < 300:
        return envelope
    message = extract_error_message(response, envelope)
    messages = envelope.messages if envelope else ()
    exit_codes = {m.exit_code for m in messages}
    if status_code == 404:
        exc_cls = errors.NoSuchKey
    elif status_code == 409 and EXIT_CODE_DUPLICATE_CONTENT in exit_codes:
        exc_cls = errors.DuplicateKeyContent
    elif status_code == 422:
        exc_cls = errors.InvalidKey
    else:
        exc_cls = errors.EndpointError
    raise exc_cls(message, status_code = status_code, url = response.url, messages = messages)


class Transport:
    """
    HTTP transport for the platform's REST API, which handles authentication,
    content negotiation and error conversion.

    Args:
        url: The base URL of the REST API, e.g. ``https://paas.example.com/broker/rest``.
        username: The username for HTTP basic authentication.
        password: The password for HTTP basic authentication.
        token: A bearer token to use instead of a username and password.
        verify_ssl: If ``True`` (the default), verify SSL certificates.
        timeout: The timeout in seconds for each request.
        api_version: The REST API version to request.
    """
    def __init__(
        self,
        url,
        username = None,
        password = None,
        token = None,
        verify_ssl = True,
        timeout = 60,
        api_version = '1.6'
    ):
        self.url = url.rstrip('/')
        self.username = username
        self.timeout = timeout
        self.session = requests.Session()
        self.session.verify = verify_ssl
        self.session.headers.update({
            'Accept': f"application/json; version={api_version}",
        })
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"
        elif username is not None:
            self.session.auth = (username, password or '')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def prepare_url(self, path):
        """
        Returns the URL for the given path, which can be relative to the base URL
        or fully-qualified.
        """
        if re.match(r'https?://', path):
            return path
        return '/'.join([self.url, path.strip('/')])

    def api_request(self, method, path, **kwargs):
        """
        Makes a request to the given path and returns the decoded
        :py:class:`Envelope` if it has a 2xx status code.

        If the status code is not 2xx, or the server cannot be reached, a relevant
        exception is raised.
        """
        if self.session is None:
            raise errors.TransportError('Transport has already been closed.')
        url = self.prepare_url(path)
        kwargs.setdefault('timeout', self.timeout)
        logger.debug('%s %s', method.upper(), url)
        # We deal with status codes ourselves, so an exception from requests
        # means the server could not be talked to
        try:
            response = self.session.request(method.upper(), url, **kwargs)
        except requests.exceptions.RequestException as exc:
            logger.exception('Could not connect to %s', url)
            raise errors.CommunicationError(f"Could not connect to {url}: {exc}")
        return check_response(response)

    def get(self, path, **kwargs):
        return self.api_request('GET', path, **kwargs)

    def post(self, path, **kwargs):
        return self.api_request('POST', path, **kwargs)

    def put(self, path, **kwargs):
        return self.api_request('PUT', path, **kwargs)

    def delete(self, path, **kwargs):
        return self.api_request('DELETE', path, **kwargs)

    def close(self):
        """
        Closes the underlying HTTP session.
        """
        if self.session is not None:
            self.session.close()
            self.session = None
