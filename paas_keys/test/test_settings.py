"""
Tests for the settings object and building sessions from it.
"""

import unittest

from django.conf import settings as django_settings

from ..keygen import SshKeygen, CryptographyKeygen
from ..session import UserSession
from ..settings import KeysSettings
from .util import BASE_URL, FakeBroker


def setUpModule():
    # The settings objects can be used outside of a Django project
    if not django_settings.configured:
        django_settings.configure()


class KeysSettingsTestCase(unittest.TestCase):

    def test_defaults(self):
        settings = KeysSettings('PAAS_KEYS', dict(URL = BASE_URL))
        self.assertEqual(settings.URL, BASE_URL)
        self.assertIsNone(settings.USERNAME)
        self.assertIsNone(settings.TOKEN)
        self.assertTrue(settings.VERIFY_SSL)
        self.assertEqual(settings.TIMEOUT, 60)
        self.assertEqual(settings.API_VERSION, '1.6')
        self.assertIsNone(settings.RSA_MIN_BITS)
        self.assertIsInstance(settings.KEYGEN, SshKeygen)

    def test_keygen_factory(self):
        settings = KeysSettings('PAAS_KEYS', dict(
            URL = BASE_URL,
            KEYGEN = dict(
                FACTORY = 'paas_keys.keygen.CryptographyKeygen',
                PARAMS = dict(RSA_BITS = 3072, COMMENT = 'me@paas')
            )
        ))
        self.assertIsInstance(settings.KEYGEN, CryptographyKeygen)
        self.assertEqual(settings.KEYGEN.rsa_bits, 3072)
        self.assertEqual(settings.KEYGEN.comment, 'me@paas')

    def test_session_from_settings(self):
        settings = KeysSettings('PAAS_KEYS', dict(
            URL = BASE_URL,
            USERNAME = 'carol',
            PASSWORD = 'secret',
            TIMEOUT = 10,
            RSA_MIN_BITS = 2048
        ))
        session = UserSession.from_settings(settings)
        self.addCleanup(session.close)
        self.assertEqual(session.rsa_min_bits, 2048)
        self.assertIsInstance(session.keygen, SshKeygen)
        self.assertEqual(session._transport.timeout, 10)
        session._transport.session.mount('https://paas.test/', FakeBroker(login = 'carol'))
        self.assertEqual(session.login, 'carol')
