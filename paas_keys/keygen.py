"""
This module contains the collaborators used to generate SSH key pairs on disk.
"""

import logging
import os
import shutil
import subprocess

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, rsa

from .errors import KeygenFailed, KeyFileError
from .material import SSHKeyType


logger = logging.getLogger(__name__)


class Keygen:
    """
    Abstract base class for a key pair generator.
    """
    def generate(self, key_type, passphrase, private_key_path, public_key_path):
        """
        Generates a key pair and writes it to the given paths.

        Args:
            key_type: The :py:class:`~.material.SSHKeyType` to generate.
            passphrase: The passphrase for the private key. May be empty.
            private_key_path: The path to write the private key to.
            public_key_path: The path to write the public key to, in OpenSSH format.
        """
        raise NotImplementedError


class SshKeygen(Keygen):
    """
    Keygen that runs the OpenSSH ``ssh-keygen`` tool.

    Args:
        executable: The ``ssh-keygen`` executable to run.
        rsa_bits: The size of generated RSA keys.
        comment: The comment to attach to generated keys. If not given,
                 ``ssh-keygen`` uses its default.
    """
    #: Map of key type to the ssh-keygen type argument
    KEY_TYPES = {
        SSHKeyType.SSH_RSA: 'rsa',
        SSHKeyType.SSH_DSA: 'dsa',
    }

    def __init__(self, executable = 'ssh-keygen', rsa_bits = 2048, comment = None):
        self.executable = executable
        self.rsa_bits = rsa_bits
        self.comment = comment

    def _command(self, key_type, passphrase, private_key_path):
        command = [self.executable, '-q', '-t', self.KEY_TYPES[key_type]]
        # DSA keys are always 1024 bits for OpenSSH
        if key_type is SSHKeyType.SSH_RSA:
            command.extend(['-b', str(self.rsa_bits)])
        command.extend(['-N', passphrase, '-f', private_key_path])
        if self.comment is not None:
            command.extend(['-C', self.comment])
        return command

    def generate(self, key_type, passphrase, private_key_path, public_key_path):
        private_key_path = os.fspath(private_key_path)
        public_key_path = os.fspath(public_key_path)
        generated_public_key_path = private_key_path + '.pub'
        # ssh-keygen asks before overwriting, so remove any existing files first
        for path in {private_key_path, public_key_path, generated_public_key_path}:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise KeyFileError(f"Could not remove {path}: {exc}", path)
        command = self._command(key_type, passphrase, private_key_path)
        logger.debug('Running %s', command[0])
        try:
            result = subprocess.run(
                command,
                stdin = subprocess.DEVNULL,
                capture_output = True,
                text = True
            )
        except OSError as exc:
            raise KeygenFailed(f"Could not run {self.executable}: {exc}")
        if result.returncode != 0:
            logger.error(
                '%s exited with status %s: %s',
                self.executable,
                result.returncode,
                result.stderr.strip()
            )
            raise KeygenFailed(
                f"{self.executable} exited with status {result.returncode}.",
                result.returncode,
                result.stderr
            )
        if generated_public_key_path != public_key_path:
            shutil.move(generated_public_key_path, public_key_path)


class CryptographyKeygen(Keygen):
    """
    Keygen that generates keys in-process using ``cryptography``.

    Private keys are written in traditional OpenSSL PEM format, which OpenSSH reads.

    Args:
        rsa_bits: The size of generated RSA keys.
        comment: The comment to append to the public key.
    """
    def __init__(self, rsa_bits = 2048, comment = None):
        self.rsa_bits = rsa_bits
        self.comment = comment

    def _private_key(self, key_type):
        if key_type is SSHKeyType.SSH_RSA:
            return rsa.generate_private_key(public_exponent = 65537, key_size = self.rsa_bits)
        elif key_type is SSHKeyType.SSH_DSA:
            return dsa.generate_private_key(key_size = 1024)
        else:
            raise KeygenFailed(f"Unsupported key type: {key_type}")

    def generate(self, key_type, passphrase, private_key_path, public_key_path):
        private_key = self._private_key(key_type)
        if passphrase:
            encryption = serialization.BestAvailableEncryption(passphrase.encode())
        else:
            encryption = serialization.NoEncryption()
        private_bytes = private_key.private_bytes(
            encoding = serialization.Encoding.PEM,
            format = serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm = encryption
        )
        public_line = private_key.public_key().public_bytes(
            encoding = serialization.Encoding.OpenSSH,
            format = serialization.PublicFormat.OpenSSH
        ).decode()
        if self.comment:
            public_line = f"{public_line} {self.comment}"
        try:
            with open(private_key_path, 'wb') as fh:
                fh.write(private_bytes)
            os.chmod(private_key_path, 0o600)
            with open(public_key_path, 'w', encoding = 'utf-8') as fh:
                fh.write(public_line + '\n')
        except OSError as exc:
            raise KeyFileError(f"Could not write key pair: {exc}", private_key_path)
