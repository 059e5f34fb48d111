"""
Settings helpers for the ``paas_keys`` package.
"""

from settings_object import SettingsObject, Setting, ObjectFactorySetting


class KeysSettings(SettingsObject):
    """
    Settings object for connecting to the platform and managing SSH keys.

    Create one with ``KeysSettings('PAAS_KEYS', {...})``, or with just the name to
    read the ``PAAS_KEYS`` Django setting.
    """
    ####
    # Connection settings
    ####
    #: The base URL of the platform's REST API
    URL = Setting()
    #: The username for HTTP basic authentication
    USERNAME = Setting(default = None)
    #: The password for HTTP basic authentication
    PASSWORD = Setting(default = None)
    #: A bearer token to use instead of a username and password
    TOKEN = Setting(default = None)
    #: Indicates whether to verify SSL when connecting over HTTPS
    VERIFY_SSL = Setting(default = True)
    #: The timeout in seconds for each request
    TIMEOUT = Setting(default = 60)
    #: The REST API version to request
    API_VERSION = Setting(default = '1.6')

    ####
    # Key settings
    ####
    #: The keygen used to create new key pairs
    KEYGEN = ObjectFactorySetting(
        default = dict(FACTORY = 'paas_keys.keygen.SshKeygen')
    )
    #: The minimum size for RSA keys, checked before keys are sent
    #: By default, no check is made and the server decides
    RSA_MIN_BITS = Setting(default = None)
