import codecs
import os
import re

from setuptools import find_packages, setup


def read_file(filename, encoding='utf8'):
    """Read unicode from given file."""
    with codecs.open(filename, encoding=encoding) as fd:
        return fd.read()


here = os.path.abspath(os.path.dirname(__file__))

# read version number (and other metadata) from package init
init_fn = os.path.join(here, 'certrenew', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

readme = read_file(os.path.join(here, 'README.rst'))
version = meta['version']

install_requires = [
    # acme 3.x removed the tls-sni-01 fallback and the old client
    # constructors used here
    'acme>=2.6,<3',
    'ConfigArgParse>=0.9.3',
    'configobj',
    # pkcs12.serialize_key_and_certificates; 43+ rejects CNs over 64 chars
    'cryptography>=3.0,<43',
    'ftputil>=4.0',
    'josepy>=1.13,<2',
    'parsedatetime>=1.3',  # Calendar.parseDT
    'pyOpenSSL<24.3',  # josepy 1.x needs crypto.X509Req
    'pyrfc3339',
    'pytz',
    'requests',
    'setuptools',
    'zope.component',
    'zope.interface',
]

test_extras = [
    'mock',
    'pytest',
]

dev_extras = test_extras + [
    'coverage',
    'pytest-cov',
    'pylint',
    'tox',
    'wheel',
]

setup(
    name='certrenew',
    version=version,
    description="Unattended ACME certificate renewal",
    long_description=readme,
    license='Apache License 2.0',
    python_requires='>=3.6',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
        'Topic :: System :: Networking',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(exclude=['docs', 'examples', 'venv']),
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        'dev': dev_extras,
        'test': test_extras,
    },

    test_suite='certrenew',

    entry_points={
        'console_scripts': [
            'certrenew = certrenew.main:main',
        ],
    },
)
