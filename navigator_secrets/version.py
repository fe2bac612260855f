"""Navigator Secrets Meta information.
   Navigator Secrets keeps passwords, tokens and keys in a local
   passphrase-protected vault file.
"""
__title__ = 'navigator_secrets'
__description__ = (
   'Navigator Secrets keeps passwords, tokens and keys '
   'in a local passphrase-protected vault file.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-secrets'
