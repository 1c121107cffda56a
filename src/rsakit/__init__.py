"""Educational RSA key generation and bulk encryption.

Generates RSA key pairs from a parallel, cached prime search, stores them in small base64 or binary key files, and
encrypts or decrypts arbitrary byte streams block by block while preserving their exact length. Textbook RSA only:
no padding scheme, no constant-time arithmetic.

Typical usage example:

    keys = generate_key(CONFIG_DEF._replace(prime_max=256))
    with open("plain", "rb") as src, open("cipher", "wb") as dst:
        process(src, dst, RunMode.ENCODE, keys.public)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from rsakit.arith import mod_inverse
from rsakit.arith import pow_mod
from rsakit.config import CONFIG_DEF
from rsakit.config import Config
from rsakit.keygen import PRIMES_CACHE
from rsakit.keygen import PrimeCache
from rsakit.keygen import PrimeTimeoutError
from rsakit.keygen import check_prime
from rsakit.keygen import generate_key
from rsakit.keygen import generate_prime
from rsakit.keygen import miller_rabin
from rsakit.keys import Key
from rsakit.keys import KeyData
from rsakit.keys import KeyFormatError
from rsakit.keys import KeyPair
from rsakit.keys import KeyParseError
from rsakit.pipeline import RunMode
from rsakit.pipeline import process

__version__ = "0.0.1"
__all__ = [
    "CONFIG_DEF",
    "Config",
    "Key",
    "KeyData",
    "KeyFormatError",
    "KeyPair",
    "KeyParseError",
    "PRIMES_CACHE",
    "PrimeCache",
    "PrimeTimeoutError",
    "RunMode",
    "check_prime",
    "generate_key",
    "generate_prime",
    "miller_rabin",
    "mod_inverse",
    "pow_mod",
    "process",
]
