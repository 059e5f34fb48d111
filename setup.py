#!/usr/bin/env python3

import os
from setuptools import setup, find_packages


here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md')) as f:
    README = f.read()

if __name__ == "__main__":
    setup(
        name = 'paas-keys',
        version = '0.1.0',
        description = 'Client for managing the SSH keys of a PaaS account through its REST API.',
        long_description = README,
        long_description_content_type = 'text/markdown',
        classifiers = [
            "Programming Language :: Python",
            "Programming Language :: Python :: 3",
            "Framework :: Django",
            "Topic :: Internet :: WWW/HTTP",
            "Topic :: Security :: Cryptography",
        ],
        keywords = 'paas ssh keys rest client',
        packages = find_packages(),
        include_package_data = True,
        zip_safe = False,
        python_requires = '>=3.7',
        install_requires = [
            'requests',
            'django',
            'django-settings-object',
            'cryptography',
        ],
    )
