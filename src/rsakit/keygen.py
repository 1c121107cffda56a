"""Core Key Generation Utility, mainly focusing on the parallel search for random primes.

Primes are found by racing a pool of worker threads, each drawing random candidates from the requested range and
testing them with trial division followed by Miller-Rabin. Every prime found in one race is kept in a process-wide
cache, so the surplus from one request serves the next ones for free.

Typical usage example:

    p = generate_prime(2**14, 2**512, CONFIG_DEF)
    keys = generate_key(CONFIG_DEF._replace(prime_max=256))
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import math
import queue
import secrets
import threading
import time
import typing

from rsakit.arith import euler
from rsakit.arith import mod_inverse
from rsakit.arith import pow_mod
from rsakit.config import CONFIG_DEF
from rsakit.config import Config
from rsakit.keys import Key

logger = logging.getLogger(__name__)

_SMALL_PRIMES: list[int] = []
_SMALL_PRIMES_CAP: int = 0
SEARCH_EPOCH: int = 16


class PrimeTimeoutError(TimeoutError):
    """A prime search ran past its time budget.

    Attributes:
        elapsed: The time spent, in milliseconds.
    """

    def __init__(self, elapsed: int) -> None:
        super().__init__(f"Generation timeout after {elapsed} ms")
        self.elapsed = elapsed


class KeySet(typing.NamedTuple):
    public: Key
    private: Key


class PrimeCache:
    """A thread-safe stack of primes found in surplus by earlier searches."""

    def __init__(self) -> None:
        self._primes: list[int] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._primes)

    def push(self, prime: int) -> None:
        with self._lock:
            self._primes.append(prime)

    def pop(self, low: int, high: int) -> int | None:
        """Removes and returns the most recently cached prime in `[low, high)`.

        Args:
            low: Inclusive lower bound.
            high: Exclusive upper bound.

        Returns:
            The prime, or None if no cached prime fits the range.
        """
        with self._lock:
            for i in range(len(self._primes) - 1, -1, -1):
                if low <= self._primes[i] < high:
                    return self._primes.pop(i)
        return None


PRIMES_CACHE = PrimeCache()


def _sieve(n: int = 10000) -> list[int]:
    """Implements the Sieve of Eratosthenes.

    Uses the textbook Sieve of Eratosthenes to generate a set of primes up to `n`.
    Includes memory space optimization and sieving until root.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.

    Returns:
        A list of primes up to `n`.
    """
    if n < 2:
        return []
    i_size = (n - 1) // 2
    candidate: list[bool] = [True] * i_size
    for i in range(int(n**0.5) // 2):
        if candidate[i]:
            r = 2 * i + 3
            for j in range((r * r - 3) // 2, i_size, r):
                candidate[j] = False
    result = [2] + [(no * 2 + 3) for no, ele in enumerate(candidate) if ele]
    return result


def get_pre_primes(n: int = 10000, change: bool = False) -> list[int]:
    """Get the small primes, automatically generating if necessary.

    Regeneration occurs if requested range is greater, forced by `change` or cache is empty.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.
        change: Whether to force a recomputation of primes. Defaults to False.

    Returns:
        List of primes in ascending order. All primes at least to `n` or more unless `change` is True.
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    global _SMALL_PRIMES
    global _SMALL_PRIMES_CAP
    if n > _SMALL_PRIMES_CAP or change or not _SMALL_PRIMES:
        _SMALL_PRIMES = _sieve(n)
        _SMALL_PRIMES_CAP = n
    return _SMALL_PRIMES


def _trial_division(no: int, n: int = 10000) -> bool:
    """Check the provided `no` against the known small primes.

    Args:
         no: The number to check. Must be integer and non-negative.
         n: The number up to which to generate primes. Defaults to 10000.

    Returns:
        False if `no` cannot be prime, True otherwise.
    """
    if no < 2:
        return False
    for prime in get_pre_primes(n):
        if prime**2 > no:
            return True
        if no % prime == 0:
            return False
    return True


def miller_rabin(n: int, rounds: int) -> bool:
    """Perform Miller-Rabin primality test.

    Zero is reported prime; the searchers never draw it.

    Args:
        n: Integer to be tested. Must be >= 0.
        rounds: Number of random witnesses to try.

    Returns:
        True if `n` is probably prime, False otherwise.
    """
    if n == 0:
        return True
    if n % 2 == 0 or n == 1:
        return False
    tw = n - 1
    s = (tw & -tw).bit_length() - 1
    d = tw >> s
    for _ in range(rounds):
        a = secrets.randbelow(n - 2) + 2
        x = pow_mod(a, d, n)
        if x == 1 or x == tw:
            continue
        for _ in range(s - 1):
            x = (x * x) % n
            if x == tw:
                break
        else:
            return False
    return True


def check_prime(candidate: int, rounds: int, n: int = 10000) -> bool:
    """Composite primality test: trial division by small primes, then Miller-Rabin.

    Args:
        candidate: The candidate prime to test.
        rounds: Number of Miller-Rabin iterations to perform.
        n: The number up to which to trial divide. Defaults to 10000.

    Returns:
        True if `candidate` is probably prime, False otherwise.
    """
    if not _trial_division(candidate, n):
        return False
    return miller_rabin(candidate, rounds)


def generate_one_prime(low: int, high: int, rounds: int, time_max: int) -> int:
    """Draws random candidates from `[low, high)` until one is prime or time runs out.

    The clock is only read between batches of `SEARCH_EPOCH` candidates.

    Args:
        low: Inclusive lower bound.
        high: Exclusive upper bound.
        rounds: Miller-Rabin rounds per candidate.
        time_max: Time budget in milliseconds.

    Returns:
        A probable prime.

    Raises:
        PrimeTimeoutError: When `time_max` elapsed with no prime found.
    """
    start = time.monotonic()
    tries = 0
    while True:
        tries += SEARCH_EPOCH
        for _ in range(SEARCH_EPOCH):
            candidate = secrets.randbelow(high - low) + low
            if check_prime(candidate, rounds):
                logger.info("Done generation in %d tries after %d ms", tries, (time.monotonic() - start) * 1000)
                return candidate
        elapsed = int((time.monotonic() - start) * 1000)
        if elapsed > time_max:
            logger.info("Failed generation in %d tries after %d ms", tries, elapsed)
            raise PrimeTimeoutError(elapsed)


def _search_worker(low: int, high: int, rounds: int, time_max: int, results: queue.Queue) -> None:
    try:
        results.put(generate_one_prime(low, high, rounds, time_max))
    except PrimeTimeoutError as err:
        results.put(err)


def generate_prime(low: int, high: int, config: Config = CONFIG_DEF, cache: PrimeCache | None = None) -> int:
    """Generates a probable prime in `[low, high)`.

    Serves from the cache when it can. Otherwise races `config.threads` workers, caches everything they find and
    hands out one of the results.

    Args:
        low: Inclusive lower bound. Must be >= 1.
        high: Exclusive upper bound. Must be > `low`.
        config: Supplies `threads`, `rounds`, `time_max` and `retry`.
        cache: The prime cache to use. Defaults to the process-wide one.

    Returns:
        A probable prime.

    Raises:
        ValueError: If the range is empty.
        PrimeTimeoutError: If no worker found a prime in time and `config.retry` is off.
    """
    if high <= low:
        raise ValueError(f"Empty prime range [{low}, {high})")
    if cache is None:
        cache = PRIMES_CACHE
    while True:
        prime = cache.pop(low, high)
        if prime is not None:
            logger.info("Use cached prime: %d", prime)
            return prime
        results: queue.Queue = queue.Queue()
        handles = [
            threading.Thread(target=_search_worker, args=(low, high, config.rounds, config.time_max, results))
            for _ in range(max(1, config.threads))
        ]
        for handle in handles:
            handle.start()
        for _ in handles:
            res = results.get()
            if not isinstance(res, PrimeTimeoutError):
                cache.push(res)
        for handle in handles:
            handle.join()
        prime = cache.pop(low, high)
        if prime is not None:
            return prime
        if not config.retry:
            raise PrimeTimeoutError(config.time_max)
        logger.info("No prime found within %d ms, retrying", config.time_max)


def check_key_set(d: int, e: int, f: int) -> None:
    """Checks that `d` inverts `e` modulo `f`.

    Raises:
        RuntimeError: If it does not, which means the arithmetic is broken.
    """
    res = (d * e) % f
    logger.info("(d * e) %% f = %d %% %d = %d", d * e, f, res)
    if res != 1:
        raise RuntimeError(f"Key set check failed: (d * e) % f = {res}")


def generate_key(config: Config = CONFIG_DEF, cache: PrimeCache | None = None) -> KeySet:
    """Generates an RSA key pair.

    Both primes come from `[2**prime_min, 2**prime_max)`. The public exponent is itself a prime drawn from
    `[1, phi)` and coprime with `phi`.

    Args:
        config: Supplies the prime size bounds and the searcher settings.
        cache: The prime cache to use. Defaults to the process-wide one.

    Returns:
        The public key `(e, n)` and private key `(d, n)`.
    """
    low = 2**config.prime_min
    high = 2**config.prime_max
    p = generate_prime(low, high, config, cache)
    q = generate_prime(low, high, config, cache)
    while p == q:  # (Un)Likely story.
        q = generate_prime(low, high, config, cache)
    n = p * q
    f = euler(p, q)
    while True:
        e = generate_prime(1, f, config, cache)
        if math.gcd(f, e) == 1:
            break
    d = mod_inverse(e, f)
    check_key_set(d, e, f)
    return KeySet(Key(e, n), Key(d, n))
