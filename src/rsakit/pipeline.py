"""Bulk encryption and decryption of byte streams, block by block.

The input is cut into blocks small enough to be read as integers below the modulus, and each block is raised to
the key exponent by a pool of worker threads. Cipher blocks are twice the plaintext block size so that every
result fits, and the ciphertext starts with the plaintext length so that decryption gives back exactly as many
bytes as were encrypted.

Typical usage example:

    with open("plain", "rb") as src, open("cipher", "wb") as dst:
        process(src, dst, RunMode.ENCODE, public_key, threads=4)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import logging
import queue
import threading
import typing

from rsakit.arith import bytes_to_integer
from rsakit.arith import integer_to_bytes
from rsakit.keys import Key

logger = logging.getLogger(__name__)

LENGTH_HEADER_LEN = 8


class RunMode(enum.Enum):
    GENERATE = "generate"
    ENCODE = "encode"
    DECODE = "decode"
    TEST = "test"


class Reader(typing.Protocol):

    def read(self, size: int = -1, /) -> bytes:
        ...


class Writer(typing.Protocol):

    def write(self, data: bytes, /) -> int | None:
        ...

    def flush(self) -> None:
        ...


def group_size_bytes(m: int) -> int:
    """The plaintext block size for a modulus: the largest power of two below its byte length.

    Args:
        m: The modulus.

    Returns:
        The block size in bytes. Zero for moduli of a single byte.
    """
    mod_len = (m.bit_length() + 7) // 8
    if mod_len == 0:
        return 0
    return (1 << (mod_len - 1).bit_length()) >> 1


def block_sizes(group_size: int, mode: RunMode) -> tuple[int, int]:
    """Source and result block sizes in bytes for the given mode."""
    if mode is RunMode.DECODE:
        return 2 * group_size, group_size
    return group_size, 2 * group_size


def read_source(reader: Reader, size: int) -> bytes:
    """Reads `size` bytes, or fewer only at end of stream."""
    parts = []
    left = size
    while left > 0:
        chunk = reader.read(left)
        if not chunk:
            break
        parts.append(chunk)
        left -= len(chunk)
    return b"".join(parts)


def transform_block(source: bytes, key: Key, result_len: int, pad: bool) -> bytes:
    """Runs one block through the RSA primitive.

    Args:
        source: The little-endian block.
        key: The key to apply.
        result_len: The full size of a result block.
        pad: Zero-fill the result up to `result_len`. Every block but the last one is padded.

    Returns:
        The little-endian result.

    Raises:
        ValueError: If the block is not below the modulus.
        RuntimeError: If a padded block does not come out at `result_len`.
    """
    res = integer_to_bytes(key.c_rsa(bytes_to_integer(source)))
    if pad:
        res = res.ljust(result_len, b"\x00")
        if len(res) != result_len:
            raise RuntimeError(f"Block of {len(res)} bytes does not fit into {result_len}")
    return res


def _block_worker(tasks: queue.Queue, results: queue.Queue, result_len: int, chunks: int) -> None:
    while True:
        task = tasks.get()
        if task is None:
            return
        index, key, source = task
        try:
            res = transform_block(source, key, result_len, index + 1 != chunks)
        except (ValueError, RuntimeError) as err:
            results.put((index, err))
            continue
        results.put((index, res))


def map_blocks(blocks: list[bytes], key: Key, result_len: int, threads: int = 1) -> list[bytes]:
    """Transforms all blocks on a pool of worker threads.

    Args:
        blocks: The source blocks, in order.
        key: The key to apply.
        result_len: The full size of a result block.
        threads: Number of workers.

    Returns:
        The result blocks, in source order.

    Raises:
        RuntimeError: If any block index is missing or duplicated among the results.
    """
    chunks = len(blocks)
    threads = max(1, threads)
    tasks: queue.Queue = queue.Queue(maxsize=threads)
    results: queue.Queue = queue.Queue()
    handles = [
        threading.Thread(target=_block_worker, args=(tasks, results, result_len, chunks)) for _ in range(threads)
    ]
    for handle in handles:
        handle.start()
    for index, source in enumerate(blocks):
        tasks.put((index, key, source))
    for _ in handles:
        tasks.put(None)
    for handle in handles:
        handle.join()
    res_collect = []
    while not results.empty():
        res_collect.append(results.get_nowait())
    res_collect.sort(key=lambda x: x[0])
    if [index for index, _ in res_collect] != list(range(chunks)):
        raise RuntimeError(f"Expected results for {chunks} blocks, got indices {[i for i, _ in res_collect]}")
    for _, res in res_collect:
        if isinstance(res, Exception):
            raise res
    return [res for _, res in res_collect]


def process(reader: Reader, writer: Writer, mode: RunMode, key: Key, threads: int = 1) -> None:
    """Encrypts or decrypts a whole stream.

    Encoding writes the 8 byte little-endian plaintext length, then the cipher blocks. Decoding reads that length
    back and writes exactly that many bytes, zero-filling whatever the final block came short by.

    Args:
        reader: Binary source stream.
        writer: Binary destination stream.
        mode: `RunMode.ENCODE` or `RunMode.DECODE`.
        key: The public key to encode with, or the private key to decode with.
        threads: Number of worker threads.

    Raises:
        ValueError: If the mode cannot process streams or the modulus is too small to carry a block.
        IOError: If a ciphertext is too short to hold its length header.
    """
    if mode not in (RunMode.ENCODE, RunMode.DECODE):
        raise ValueError(f"Run mode {mode.value} does not process streams")
    group_size = group_size_bytes(key.m)
    if group_size == 0:
        raise ValueError(f"Modulus {key.m} is too small to carry a block")
    source_len, result_len = block_sizes(group_size, mode)
    logger.info("group size %d, input => output: %d => %d", group_size, source_len, result_len)
    filesize_data = 0
    if mode is RunMode.DECODE:
        header = read_source(reader, LENGTH_HEADER_LEN)
        if len(header) != LENGTH_HEADER_LEN:
            raise IOError(f"Too small file! Ciphertext needs an {LENGTH_HEADER_LEN} byte length header")
        filesize_data = bytes_to_integer(header)
    source_data = []
    while source := read_source(reader, source_len):
        source_data.append(source)
    filesize_read = sum(len(source) for source in source_data)
    logger.info("source chunk: %d", len(source_data))
    res_collect = map_blocks(source_data, key, result_len, threads)
    if mode is RunMode.ENCODE:
        filesize_data = filesize_read
        writer.write(integer_to_bytes(filesize_data, LENGTH_HEADER_LEN))
    written = 0
    for res_data in res_collect:
        if mode is RunMode.DECODE:
            res_data = res_data[:filesize_data - written]
        writer.write(res_data)
        written += len(res_data)
    if mode is RunMode.DECODE and written < filesize_data:
        writer.write(b"\x00" * (filesize_data - written))
    logger.info("read filesize: %d, data filesize: %d, res chunk: %d", filesize_read, filesize_data, len(res_collect))
    writer.flush()
