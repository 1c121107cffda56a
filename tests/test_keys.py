# pylint: disable=missing-module-docstring,redefined-outer-name
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import base64

from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

from rsakit import keys as rkeys
from rsakit.keys import Key
from rsakit.keys import KeyData
from rsakit.keys import KeyPair
from rsakit.keys import KeyParseError

template_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
privs = template_key.private_numbers()
n = privs.public_numbers.n
known_keys = [
    Key(7, 187),
    Key(23, 187),
    Key(65537, n),
    Key(privs.d, n),
    Key(),
]


@pytest.fixture(params=known_keys, ids=lambda k: f"key-{k.m.bit_length()}bits")
def key(request) -> Key:
    return request.param


@pytest.fixture(params=[True, False], ids=["base64", "binary"])
def b64(request) -> bool:
    return request.param


def test_payload_layout():
    data = KeyData(Key(7, 187), rkeys.PUBLIC, "hi")
    assert data.to_bytes() == b"\x01\x00\x00\x00\x01\x00\x00\x00\x07\xbbPUBLIC_hi"


def test_payload_zero_key():
    payload = KeyData().to_bytes()
    assert payload == b"\x01\x00\x00\x00\x01\x00\x00\x00\x00\x00" + b"\x00" * 7
    assert KeyData.from_bytes(payload).is_empty


def test_payload_round(key):
    data = KeyData.new_private(key, "Unicode comment: ключ")
    res = KeyData.from_bytes(data.to_bytes())
    assert res.key == key
    assert res.mode == rkeys.PRIVATE
    assert res.comment == "Unicode comment: ключ"


def test_save_load_round(key, b64, tmp_path):
    data = KeyData.new_public(key, "RSA-RS COMMENT")
    data.generate_header_footer(512)
    data.save(tmp_path / "key.pub", b64)
    res = KeyData.load(tmp_path / "key.pub")
    assert res == data
    assert res.key == key
    assert res.mode == rkeys.PUBLIC
    assert res.comment == "RSA-RS COMMENT"
    if b64:
        assert res.header == "-----BEGIN RSA-512 PUBLIC_ KEY-----"
        assert res.footer == "-----END RSA-512 PUBLIC_ KEY-----"
    else:
        assert res.header == res.footer == ""


def test_text_layout(tmp_path):
    data = KeyData.new_private(Key(privs.d, n), "x" * 300)
    data.generate_header_footer(1024)
    data.save(tmp_path / "key")
    lines = (tmp_path / "key").read_text(encoding="ascii").splitlines()
    assert lines[0] == "-----BEGIN RSA-1024 PRIVATE KEY-----"
    assert lines[-1] == "-----END RSA-1024 PRIVATE KEY-----"
    body = lines[1:-1]
    assert all(len(line) == rkeys.BASE64_SPLIT for line in body[:-1])
    assert 0 < len(body[-1]) <= rkeys.BASE64_SPLIT
    assert base64.b64decode("".join(body)) == data.to_bytes()


def test_text_fallback_frame(tmp_path):
    KeyData.new_public(Key(7, 187), "").save(tmp_path / "key.pub")
    lines = (tmp_path / "key.pub").read_text(encoding="ascii").splitlines()
    assert lines[0] == "-----BEGIN RSA-RS PUBLIC_ KEY-----"
    assert lines[-1] == "-----END RSA-RS PUBLIC_ KEY-----"


def test_auto_detection(b64, tmp_path):
    KeyData.new_public(Key(65537, n), "c").save(tmp_path / "key.pub", b64)
    raw = (tmp_path / "key.pub").read_bytes()
    assert rkeys.is_text(raw[:rkeys.READER_JUDGE_BUF]) == b64


@pytest.mark.parametrize("head,expected", [(b"----", True), (b"AQAA", True), (b"\x01\x00\x00\x00", False),
                                           (b"ab c", False), (b"abc\n", False), (b"\x80abc", False)])
def test_is_text(head, expected):
    assert rkeys.is_text(head) == expected


def test_text_headerless_body():
    payload = KeyData.new_public(Key(7, 187), "c").to_bytes()
    res, header, footer = rkeys.read_key_bytes(base64.b64encode(payload) + b"\n")
    assert res == payload
    assert header == footer == ""


def test_text_crlf():
    payload = KeyData.new_public(Key(65537, n), "c").to_bytes()
    text = base64.b64encode(payload).decode()
    raw = f"-----BEGIN RSA-RS PUBLIC_ KEY-----\r\n{text[:70]}\r\n{text[70:]}\r\n-----END RSA-RS PUBLIC_ KEY-----\r\n"
    res, header, footer = rkeys.read_key_bytes(raw.encode("ascii"))
    assert res == payload
    assert header == "-----BEGIN RSA-RS PUBLIC_ KEY-----"
    assert footer == "-----END RSA-RS PUBLIC_ KEY-----"


def test_load_missing(tmp_path):
    res = KeyData.load(tmp_path / "nothing")
    assert res.is_empty
    assert res == KeyData()


@pytest.mark.parametrize("raw", [b"", b"\x01", b"AQA"])
def test_load_too_short(raw, tmp_path):
    (tmp_path / "key").write_bytes(raw)
    with pytest.raises(KeyParseError, match="Data length not enough"):
        KeyData.load(tmp_path / "key")


def test_load_bad_base64(tmp_path):
    (tmp_path / "key").write_text("-----BEGIN RSA-RS PUBLIC_ KEY-----\nnot*base64!\n-----END RSA-RS PUBLIC_ KEY-----\n",
                                  encoding="ascii")
    with pytest.raises(KeyParseError):
        KeyData.load(tmp_path / "key")


def test_load_non_ascii_text(tmp_path):
    (tmp_path / "key").write_bytes(b"----\xff\xfe")
    with pytest.raises(KeyParseError):
        KeyData.load(tmp_path / "key")


@pytest.mark.parametrize("payload", [
    b"\x01\x00\x00",
    b"\x10\x00\x00\x00\x10\x00\x00\x00\x01\x02",
    b"\x01\x00\x00\x00\x01\x00\x00\x00\x07\xbbPUB",
])
def test_from_bytes_truncated(payload):
    with pytest.raises(KeyParseError):
        KeyData.from_bytes(payload)


def test_from_bytes_bad_comment():
    with pytest.raises(KeyParseError):
        KeyData.from_bytes(b"\x01\x00\x00\x00\x01\x00\x00\x00\x07\xbbPUBLIC_\xff\xfe")


def test_flipped_character(tmp_path):
    data = KeyData.new_public(Key(65537, n), "RSA-RS COMMENT")
    data.generate_header_footer(1024)
    data.save(tmp_path / "key.pub")
    lines = (tmp_path / "key.pub").read_text(encoding="ascii").splitlines()
    body = list(lines[1])
    body[12] = "B" if body[12] != "B" else "C"
    lines[1] = "".join(body)
    (tmp_path / "key.pub").write_text("\n".join(lines) + "\n", encoding="ascii")
    try:
        res = KeyData.load(tmp_path / "key.pub")
    except KeyParseError:
        return
    assert res.key != data.key


def test_key_data_equality():
    assert KeyData(Key(7, 187), rkeys.PUBLIC, "a") == KeyData(Key(7, 187), rkeys.PRIVATE, "b")
    assert KeyData(Key(7, 187)) != KeyData(Key(23, 187))
    assert KeyData() != Key()


def test_info(capsys):
    KeyData.new_private(Key(23, 187), "hello").info()
    assert capsys.readouterr().out == "PRIVATE key, comment: hello\n"


@pytest.mark.parametrize("flow", [-1, 1])
def test_overflow_underflow_c_rsa(flow):
    key = Key(65537, n)
    with pytest.raises(ValueError):
        key.c_rsa(n * flow)
    with pytest.raises(ValueError):
        Key().c_rsa(0)


def test_c_rsa_matches_cryptography():
    public, private = Key(65537, n), Key(privs.d, n)
    message = 17092025232642
    assert public.c_rsa(message) == pow(message, 65537, n)
    assert private.c_rsa(public.c_rsa(message)) == message


def test_key_pair_round(b64, tmp_path):
    pair = KeyPair(KeyData.new_public(Key(65537, n), "c"), KeyData.new_private(Key(privs.d, n), "c"))
    pair.save(tmp_path / "key", b64)
    assert (tmp_path / "key").is_file()
    assert (tmp_path / "key.pub").is_file()
    res = KeyPair.load(tmp_path / "key")
    assert res.public.key == Key(65537, n)
    assert res.private.key == Key(privs.d, n)
    assert res.public.mode == rkeys.PUBLIC
    assert res.private.mode == rkeys.PRIVATE


def test_key_pair_one_side(tmp_path):
    KeyData.new_public(Key(65537, n), "c").save(tmp_path / "key.pub")
    res = KeyPair.load(tmp_path / "key")
    assert not res.public.is_empty
    assert res.private.is_empty


def test_public_path():
    assert str(rkeys.public_path("data/key")) == "data/key.pub"
