"""ZeroKey Meta information.
   ZeroKey keeps password-manager vault secrets encrypted on the client,
   so the storage server only ever sees ciphertext.
"""
__title__ = 'zerokey'
__description__ = (
   'ZeroKey is a client-side zero-knowledge encryption core '
   'for password vaults.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 ZeroKey Authors'
__author__ = 'ZeroKey Authors'
__author_email__ = 'dev@zerokey.invalid'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/zerokey/zerokey'
