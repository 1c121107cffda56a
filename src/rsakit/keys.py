"""Key values, key files and the key file codec.

A key file holds one half of a key pair as a small binary payload, optionally wrapped in base64 with PEM-like
framing lines. The payload layout is:

    u32 (LE)  length of the base
    u32 (LE)  length of the modulus
    bytes     base, little-endian
    bytes     modulus, little-endian
    7 bytes   role tag, `PUBLIC_` or `PRIVATE`, zero padded
    bytes     UTF-8 comment, up to the end of the payload

Readers tell binary files from text files by looking at the first four bytes only.

Typical usage example:

    pair = KeyPair(KeyData.new_public(Key(e, n), "me"), KeyData.new_private(Key(d, n), "me"))
    pair.save("key")
    pub = KeyData.load("key.pub")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import base64
import binascii
import pathlib
import typing

from rsakit.arith import bytes_to_integer
from rsakit.arith import integer_to_bytes
from rsakit.arith import pow_mod

PUBLIC = "PUBLIC_"
PRIVATE = "PRIVATE"
ROLE_TAG_LEN = 7
LENGTH_FIELD_LEN = 4
BASE64_SPLIT = 70
READER_JUDGE_BUF = 4


class KeyParseError(IOError):
    """The key file is malformed."""


class KeyFormatError(IOError):
    """Reserved for key files in an unsupported format."""


class Key(typing.NamedTuple):
    """One half of an RSA key pair.

    The default instance, with both members zero, stands for a key that could not be found.

    Attributes:
        base: The exponent, public or private.
        m: The modulus.
    """
    base: int = 0
    m: int = 0

    @property
    def is_empty(self) -> bool:
        return self.base == 0 and self.m == 0

    def c_rsa(self, message: int) -> int:
        """Performs the core RSA operation, `message**base mod m`.

        Args:
            message: The int-marshalled block.

        Returns:
            The transformed block.

        Raises:
            ValueError: If the message is out of range for the current key.
        """
        if not 0 <= message < self.m:
            raise ValueError("Message representative must be in range [0, mod-1]")
        return pow_mod(message, self.base, self.m)


class KeyData:
    """A key as stored in a key file.

    Two instances compare equal when their keys do, regardless of comment or framing. The default instance is the
    sentinel returned for missing key files.

    Attributes:
        key: The key itself.
        mode: The role tag, `PUBLIC_` or `PRIVATE`.
        comment: Free text stored after the key.
        header: The text-form opening line, if any.
        footer: The text-form closing line, if any.
    """

    def __init__(self,
                 key: Key | None = None,
                 mode: str = "",
                 comment: str = "",
                 header: str = "",
                 footer: str = "") -> None:
        self.key = key if key is not None else Key()
        self.mode = mode
        self.comment = comment
        self.header = header
        self.footer = footer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyData):
            return NotImplemented
        return self.key == other.key

    def __repr__(self) -> str:
        return f"KeyData(key={self.key!r}, mode={self.mode!r}, comment={self.comment!r})"

    @property
    def is_empty(self) -> bool:
        return self.key.is_empty

    @classmethod
    def new_public(cls, key: Key, comment: str) -> "KeyData":
        return cls(key, PUBLIC, comment)

    @classmethod
    def new_private(cls, key: Key, comment: str) -> "KeyData":
        return cls(key, PRIVATE, comment)

    def generate_header_footer(self, bits: int | None = None) -> None:
        """Sets the text-form framing lines.

        Args:
            bits: The prime size to label the key with. If omitted, the generic `RSA-RS` label is used.
        """
        self.header, self.footer = pem_frame(self.mode, bits)

    def info(self, prntr: typing.Callable = print) -> None:
        prntr(f"{self.mode} key, comment: {self.comment}")

    def to_bytes(self) -> bytes:
        """Serializes the key into the binary payload."""
        base = integer_to_bytes(self.key.base)
        m = integer_to_bytes(self.key.m)
        tag = self.mode.encode("ascii")[:ROLE_TAG_LEN].ljust(ROLE_TAG_LEN, b"\x00")
        return (integer_to_bytes(len(base), LENGTH_FIELD_LEN) + integer_to_bytes(len(m), LENGTH_FIELD_LEN) + base + m +
                tag + self.comment.encode("utf-8"))

    @classmethod
    def from_bytes(cls, payload: bytes, header: str = "", footer: str = "") -> "KeyData":
        """Parses the binary payload.

        Args:
            payload: The raw (already base64-decoded) payload.
            header: The framing header it was read with, if any.
            footer: The framing footer it was read with, if any.

        Returns:
            The parsed key data.

        Raises:
            KeyParseError: If the payload is truncated or the comment is not UTF-8.
        """
        fields = 2 * LENGTH_FIELD_LEN
        if len(payload) < fields:
            raise KeyParseError("Key payload too short for its length fields")
        len_base = bytes_to_integer(payload[:LENGTH_FIELD_LEN])
        len_m = bytes_to_integer(payload[LENGTH_FIELD_LEN:fields])
        tag_at = fields + len_base + len_m
        if len(payload) < tag_at + ROLE_TAG_LEN:
            raise KeyParseError(f"Key payload truncated: {len(payload)} bytes for {len_base}+{len_m} byte key")
        base = bytes_to_integer(payload[fields:fields + len_base])
        m = bytes_to_integer(payload[fields + len_base:tag_at])
        try:
            mode = payload[tag_at:tag_at + ROLE_TAG_LEN].rstrip(b"\x00").decode("ascii")
            comment = payload[tag_at + ROLE_TAG_LEN:].decode("utf-8")
        except UnicodeDecodeError as err:
            raise KeyParseError(f"Key role or comment is not valid text: {err}") from err
        return cls(Key(base, m), mode, comment, header, footer)

    def save(self, file: pathlib.Path | str, base64_output: bool = True) -> None:
        """Writes the key file.

        Text output without framing lines of its own gets the generic `RSA-RS` ones.

        Args:
            file: The destination.
            base64_output: Write the base64 text form rather than raw binary.
        """
        payload = self.to_bytes()
        if not base64_output:
            with open(file, "wb") as f:
                f.write(payload)
            return
        header, footer = self.header, self.footer
        if not header and not footer:
            header, footer = pem_frame(self.mode)
        write_pem(file, header, footer, payload)

    @classmethod
    def load(cls, file: pathlib.Path | str) -> "KeyData":
        """Reads a key file in either form.

        Args:
            file: The key file.

        Returns:
            The parsed key data, or the empty sentinel if the file does not exist.
        """
        try:
            with open(file, "rb") as f:
                raw = f.read()
        except FileNotFoundError:
            return cls()
        payload, header, footer = read_key_bytes(raw)
        return cls.from_bytes(payload, header, footer)


class KeyPair:
    """A public and a private key file living side by side at `path.pub` and `path`.

    Attributes:
        public: The public half, or the empty sentinel.
        private: The private half, or the empty sentinel.
    """

    def __init__(self, public: KeyData | None = None, private: KeyData | None = None) -> None:
        self.public = public if public is not None else KeyData()
        self.private = private if private is not None else KeyData()

    def __repr__(self) -> str:
        return f"KeyPair(public={self.public!r}, private={self.private!r})"

    @classmethod
    def load(cls, path: pathlib.Path | str) -> "KeyPair":
        return cls(KeyData.load(public_path(path)), KeyData.load(path))

    def save(self, path: pathlib.Path | str, base64_output: bool = True) -> None:
        self.public.save(public_path(path), base64_output)
        self.private.save(path, base64_output)


def public_path(path: pathlib.Path | str) -> pathlib.Path:
    """The public key file belonging to the key path stem `path`."""
    return pathlib.Path(f"{path}.pub")


def pem_frame(mode: str, bits: int | None = None) -> tuple[str, str]:
    """Builds the header and footer lines for a text-form key.

    Args:
        mode: The role tag.
        bits: The prime size label, `RS` if omitted.

    Returns:
        The header and footer lines.
    """
    label = "RS" if bits is None else str(bits)
    return f"-----BEGIN RSA-{label} {mode.upper()} KEY-----", f"-----END RSA-{label} {mode.upper()} KEY-----"


def is_text(head: bytes) -> bool:
    """Tells text key files from binary ones by their leading bytes being printable ASCII (space excluded)."""
    return all(0x21 <= b <= 0x7e for b in head)


def read_key_bytes(raw: bytes) -> tuple[bytes, str, str]:
    """Extracts the binary payload from the contents of a key file of either form.

    Args:
        raw: The full file contents.

    Returns:
        The payload, the header line and the footer line. Binary files have empty framing.

    Raises:
        KeyParseError: If the data is too short to classify, or the text form is not valid base64.
    """
    if len(raw) < READER_JUDGE_BUF:
        raise KeyParseError("Data length not enough")
    if not is_text(raw[:READER_JUDGE_BUF]):
        return raw, "", ""
    return read_pem(raw)


def read_pem(raw: bytes) -> tuple[bytes, str, str]:
    """Reads the text form of a key file.

    Any line starting with `-` is a framing line: the one mentioning `END` is the footer, any other the header.
    Everything else is base64 body.

    Args:
        raw: The full file contents.

    Returns:
        The decoded payload, the header line and the footer line.

    Raises:
        KeyParseError: If the file has invalid text or base64 encoding.
    """
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError as err:
        raise KeyParseError(f"Text key file is not ASCII: {err}") from err
    header, footer = "", ""
    parcel = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("-"):
            if "END" in line:
                footer = line
            else:
                header = line
        else:
            parcel.append(line)
    try:
        payload = base64.b64decode("".join(parcel), validate=True)
    except binascii.Error as err:
        raise KeyParseError(f"Key body is not valid base64: {err}") from err
    return payload, header, footer


def write_pem(file: pathlib.Path | str, header: str, footer: str, data: bytes) -> None:
    """Writes the text form of a key file.

    Args:
        file: The file to write.
        header: The opening framing line.
        footer: The closing framing line.
        data: The binary payload.
    """
    payload = base64.b64encode(data).decode("ascii")
    with open(file, "w", encoding="ascii") as f:
        f.write(header + "\n")
        res = "\n".join(payload[i:i + BASE64_SPLIT] for i in range(0, len(payload), BASE64_SPLIT))
        res += "\n" if res else ""
        f.write(res)
        f.write(footer + "\n")
