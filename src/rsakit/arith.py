"""Number-theoretic primitives shared by the key generator, the key codec and the block pipeline.

Everything here works on plain Python integers, which already provide arbitrary precision. Byte marshalling is
little-endian throughout, as both the key files and the cipher blocks store integers that way.

Typical usage example:

    d = mod_inverse(7, euler(17, 11))
    c = pow_mod(88, 7, 187)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0


def bytes_to_integer(msg: bytes) -> int:
    """Converts a little-endian byte string to a non-negative integer.

    Args:
        msg: The bytes to convert. An empty string gives zero.

    Returns:
        The representative integer.
    """
    return int.from_bytes(msg, byteorder="little", signed=False)


def integer_to_bytes(msg: int, fixedlen: int | None = None) -> bytes:
    """Converts a non-negative integer to its little-endian byte string.

    Args:
        msg: The integer to unmarshal.
        fixedlen: The target length of the byte string. If omitted, the shortest representation is used, with zero
            still taking a single byte.

    Returns:
        The representative bytes.
    """
    if fixedlen is None:
        fixedlen = max(1, (msg.bit_length() + 7) // 8)
    return msg.to_bytes(fixedlen, byteorder="little", signed=False)


def pow_mod(a: int, q: int, n: int) -> int:
    """Fast modular exponentiation by square-and-multiply.

    Walks the bits of the exponent from the least significant end, squaring the base each step.

    Args:
        a: The base.
        q: The exponent. Must be >= 0.
        n: The modulus. Must be > 0.

    Returns:
        `a**q mod n`, with `pow_mod(a, 0, n) == 1`.
    """
    r = 1
    a %= n
    while q:
        if q & 1:
            r = (r * a) % n
        q >>= 1
        a = (a * a) % n
    return r


def extended_euclid(a: int, b: int) -> tuple[int, int, int]:
    """Implements the Extended Euclidean Algorithm.

    Such that a*x + b*y = g = gcd(a, b).

    Args:
        a: The first natural number.
        b: The second natural number.

    Returns:
        Greatest common divisor of the two integers, followed by the Bezout coefficients x and y.
    """
    r0, r1 = a, b
    s0, s1, t0, t1 = 1, 0, 0, 1
    while r1 != 0:
        q = r0 // r1
        r0, r1 = r1, r0 - q * r1
        s0, s1 = s1, s0 - q * s1
        t0, t1 = t1, t0 - q * t1
    return r0, s0, t0


def mod_inverse(a: int, b: int) -> int:
    """Modular inverse of `a` modulo `b`.

    Args:
        a: The number to invert.
        b: The modulus.

    Returns:
        The inverse in `[0, b)`, or 0 when `a` and `b` are not coprime.
    """
    g, x, _ = extended_euclid(a, b)
    if g != 1:
        return 0
    return (x % b + b) % b


def euler(p: int, q: int) -> int:
    """Euler's totient of `p*q` for distinct primes `p` and `q`."""
    return (p - 1) * (q - 1)
