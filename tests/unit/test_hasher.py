"""Unit tests for content hashing and base64 encoding."""

from __future__ import annotations

from percy_sync.core.hasher import base64_encode, sha256_hex, to_bytes


class TestSha256Hex:
    def test_ascii_text(self):
        assert sha256_hex("foo") == (
            "2c26b46b68ffc68ff99b453c1d30413413422d706483bfa0f98a5e886266e7ae"
        )

    def test_unicode_text_is_hashed_as_utf8(self):
        assert sha256_hex("I ♡ JavaScript!") == (
            "67e714147fe88f73b000da2f0447d16083801ba3ac9c31f607cf8cbaf994aa09"
        )

    def test_control_and_high_characters(self):
        assert sha256_hex("\x01\x02\x99") == (
            "46e9b4475a55f86f185cc978fdaef90d4a2ef6ba66d77cecb8763a60999a41c3"
        )

    def test_bytes_and_text_share_an_address(self):
        assert sha256_hex(b"foo") == sha256_hex("foo")

    def test_digest_is_lowercase_hex(self):
        digest = sha256_hex(b"\x00\xff")
        assert len(digest) == 64
        assert digest == digest.lower()


class TestBase64Encode:
    def test_ascii_text(self):
        assert base64_encode("foo") == "Zm9v"

    def test_unicode_text_with_newline(self):
        assert base64_encode("I ♡ \nJavaScript!") == "SSDimaEgCkphdmFTY3JpcHQh"

    def test_non_ascii_code_point(self):
        assert base64_encode("\x01\x02\x99") == "AQLCmQ=="

    def test_bytes_pass_through(self):
        assert base64_encode(b"body{}") == "Ym9keXt9"


class TestToBytes:
    def test_str_is_utf8(self):
        assert to_bytes("♡") == b"\xe2\x99\xa1"

    def test_bytearray_becomes_bytes(self):
        assert to_bytes(bytearray(b"ab")) == b"ab"
