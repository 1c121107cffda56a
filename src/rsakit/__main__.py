"""The Command Line Interface for the utility.

One command, four run modes: generate a key pair, encode or decode a stream with one half of it, or test a pair
against random (or supplied) data.

Typical usage example:

    rsakit --mode generate --key data/key --prime-max 256
    rsakit --mode encode --key data/key --input plain.txt --output cipher.bin
    python -m rsakit --mode decode --key data/key --input cipher.bin
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import argparse
import contextlib
import io
import secrets
import sys
import typing

import rsakit
from rsakit import config as rconfig
from rsakit.keygen import generate_key
from rsakit.keys import KeyData
from rsakit.keys import KeyPair
from rsakit.keys import public_path
from rsakit.pipeline import RunMode
from rsakit.pipeline import group_size_bytes
from rsakit.pipeline import process
from rsakit.pipeline import read_source
from rsakit.pipeline import transform_block

MAX_TEST_BLOCKS = 1000


class HelpData(typing.NamedTuple):
    description: str
    format: typing.Type = str
    choices: list[str] | None = None


help_dict: dict[str, HelpData] = {
    "mode": HelpData("Run mode.", choices=[mode.value for mode in RunMode]),
    "key": HelpData("Key path, generate/detect `path' and `path.pub'."),
    "comment": HelpData("Attach comment to key files."),
    "binary": HelpData("Output key in binary format.", format=bool),
    "input": HelpData("Input filename, or `stdin'."),
    "output": HelpData("Output filename, or `stdout'."),
    "prime_min": HelpData("Min prime bits.", format=int),
    "prime_max": HelpData("Max prime bits.", format=int),
    "rounds": HelpData("Miller Rabin calculate rounds.", format=int),
    "time_max": HelpData("Max time in milliseconds spent trying to generate a prime.", format=int),
    "silent": HelpData("Disable log output.", format=bool),
    "retry": HelpData("Retry when failed to generate primes.", format=bool),
    "threads": HelpData("Calculate in THREADS threads.", format=int),
}

corep = argparse.ArgumentParser(prog="rsakit", description="Educational RSA key generation and bulk encryption.")
corep.add_argument("--version", "-v", action="version", version=f"%(prog)s {rsakit.__version__}")
for name, helper_data in help_dict.items():
    flag = "--" + name.replace("_", "-")
    default = getattr(rconfig.CONFIG_DEF, name)
    if helper_data.format is bool:
        action = argparse.BooleanOptionalAction if default else "store_true"
        corep.add_argument(flag, action=action, default=default, help=helper_data.description)
    else:
        corep.add_argument(flag,
                           type=helper_data.format,
                           choices=helper_data.choices,
                           default=default,
                           help=f"{helper_data.description} Default: {default}")


def parse_config(argv: typing.Sequence[str] | None = None) -> rconfig.Config:
    """Builds the run configuration from the command line.

    Streaming data to stdout forces silent mode.
    """
    args = corep.parse_args(argv)
    conf = rconfig.Config(**{name: getattr(args, name) for name in rconfig.Config._fields})
    if conf.output == "stdout" and conf.mode in (RunMode.ENCODE.value, RunMode.DECODE.value):
        conf = conf._replace(silent=True)
    return conf


def open_input(name: str, stack: contextlib.ExitStack) -> typing.BinaryIO:
    if name == "stdin":
        return sys.stdin.buffer
    return stack.enter_context(open(name, "rb"))


def open_output(name: str, stack: contextlib.ExitStack) -> typing.BinaryIO:
    if name == "stdout":
        return sys.stdout.buffer
    return stack.enter_context(open(name, "wb"))


def pspr(text: str) -> None:
    """Print only if not in silent mode."""
    if not rconfig.SILENT:
        print(text)


def run_generate(conf: rconfig.Config) -> None:
    key_set = generate_key(conf)
    key_pair = KeyPair(KeyData.new_public(key_set.public, conf.comment),
                       KeyData.new_private(key_set.private, conf.comment))
    key_pair.private.generate_header_footer(conf.prime_max)
    key_pair.public.generate_header_footer(conf.prime_max)
    key_pair.save(conf.key, not conf.binary)
    pspr(f"Generated key files: {conf.key}, {public_path(conf.key)}")


def run_stream(conf: rconfig.Config, mode: RunMode) -> None:
    path = conf.key if mode is RunMode.DECODE else public_path(conf.key)
    key_data = KeyData.load(path)
    if key_data.is_empty:
        raise IOError(f"Key file {path} not found")
    with contextlib.ExitStack() as stack:
        reader = open_input(conf.input, stack)
        writer = open_output(conf.output, stack)
        process(reader, writer, mode, key_data.key, conf.threads)
    pspr("Done")


def run_test(conf: rconfig.Config) -> None:
    """Checks a key pair by round-tripping up to `MAX_TEST_BLOCKS` blocks, or describes a lone key.

    Raises:
        IOError: If neither key file exists.
        RuntimeError: If the keys do not belong together or a block fails to round-trip.
    """
    key_pair = KeyPair.load(conf.key)
    if key_pair.public.is_empty and key_pair.private.is_empty:
        raise IOError(f"No key files found at {conf.key}")
    if key_pair.public.is_empty or key_pair.private.is_empty:
        key = key_pair.private if key_pair.public.is_empty else key_pair.public
        key.info()
        return
    key_pair.public.info()
    key_pair.private.info()
    public, private = key_pair.public.key, key_pair.private.key
    if public.m != private.m:
        raise RuntimeError("Public and private key moduli differ")
    group_size = group_size_bytes(public.m)
    if group_size == 0:
        raise ValueError(f"Modulus {public.m} is too small to carry a block")
    pspr("start testing key pair")
    with contextlib.ExitStack() as stack:
        if conf.input == "stdin":
            reader = io.BytesIO(secrets.token_bytes(MAX_TEST_BLOCKS * group_size))
        else:
            reader = open_input(conf.input, stack)
        writer = None if conf.output == "stdout" else open_output(conf.output, stack)
        for _ in range(MAX_TEST_BLOCKS):
            source = read_source(reader, group_size)
            if not source:
                break
            cipher = transform_block(source, public, 2 * group_size, True)
            clear = transform_block(cipher, private, len(source), True)
            if clear != source:
                raise RuntimeError(f"Round trip failed for block {source.hex()}")
            if writer is not None:
                writer.write(clear)
        if writer is not None:
            writer.flush()
    pspr("Test pass")


def run(conf: rconfig.Config) -> None:
    """Dispatches a run by its mode."""
    match RunMode(conf.mode):
        case RunMode.GENERATE:
            run_generate(conf)
        case RunMode.ENCODE | RunMode.DECODE:
            run_stream(conf, RunMode(conf.mode))
        case RunMode.TEST:
            run_test(conf)


def main(argv: typing.Sequence[str] | None = None) -> None:
    """Command line entry point. Exits with status 1 and a message on failure."""
    conf = parse_config(argv)
    rconfig.setup_logging(conf.silent)
    pspr(f"Run args: {conf}")
    try:
        run(conf)
    except (OSError, ValueError, RuntimeError) as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
