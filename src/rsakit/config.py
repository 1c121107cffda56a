"""Run configuration defaults, the process-wide silent flag and logging setup."""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import os
import typing

SILENT: bool = False
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class Config(typing.NamedTuple):
    """A full run configuration, as assembled by the command line.

    Attributes:
        mode: Run mode, one of generate, encode, decode or test.
        key: Key path stem. The pair lives at `key` and `key.pub`.
        comment: Comment embedded into generated key files.
        binary: Write key files as raw binary rather than base64 text.
        input: Input file name, or `stdin`.
        output: Output file name, or `stdout`.
        prime_min: Minimum prime size in bits.
        prime_max: Maximum prime size in bits.
        rounds: Miller-Rabin witness count.
        time_max: Wall-clock budget of one prime search in milliseconds.
        silent: Suppress log output.
        retry: Retry a prime search that ran out of time.
        threads: Worker pool size.
    """
    mode: str = "generate"
    key: str = "key"
    comment: str = "RSA-RS COMMENT"
    binary: bool = False
    input: str = "stdin"
    output: str = "stdout"
    prime_min: int = 14
    prime_max: int = 512
    rounds: int = 10
    time_max: int = 1000
    silent: bool = False
    retry: bool = True
    threads: int = os.cpu_count() or 1


CONFIG_DEF = Config()


def setup_logging(silent: bool) -> None:
    """Set the silent flag and configure logging for a run.

    Args:
        silent: Whether to drop informational records.
    """
    global SILENT
    SILENT = silent
    logging.basicConfig(format=LOG_FORMAT, datefmt="%H:%M:%S")
    logging.getLogger("rsakit").setLevel(logging.WARNING if silent else logging.INFO)
