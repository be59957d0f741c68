"""Tests for cipher role detection and stream URL reconstruction."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from cipher_keys import (
    CipherKeyDetector,
    decipher_streaming_data,
    deciphered_url,
    is_absolute_uri,
    parse_cipher_query,
)
from errors import CipherRoleDetectionFailed, DecipherFailed
from models import CipherRoleMap, StreamFormat, StreamingData

LONG = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456"  # 33 chars
EXACT = "ABCDEFGHIJKLMNOPQRSTUVWXYZ012345"  # 32 chars


class TestIsAbsoluteUri:
    def test_https(self) -> None:
        assert is_absolute_uri("https://example.com/v")

    def test_plain_text(self) -> None:
        assert not is_absolute_uri("xyz")

    def test_scheme_without_host(self) -> None:
        assert not is_absolute_uri("https://")

    def test_empty(self) -> None:
        assert not is_absolute_uri("")


class TestParseCipherQuery:
    def test_decodes_and_keeps_order(self) -> None:
        params = parse_cipher_query("s=abc&sp=sig&url=https%3A%2F%2Fexample.com%2Fv%3Fa%3D1")
        assert list(params) == ["s", "sp", "url"]
        assert params["url"] == "https://example.com/v?a=1"

    def test_first_value_wins(self) -> None:
        assert parse_cipher_query("a=1&a=2")["a"] == "1"


class TestDetect:
    def test_typical_bundle(self) -> None:
        roles = CipherKeyDetector.detect(
            f"s={LONG}&sp=sig&url=https%3A%2F%2Fexample.com%2Fv"
        )
        assert roles == CipherRoleMap(url_key="url", sig_key="sp", cipher_key="s")

    def test_renamed_keys_are_found_by_shape(self) -> None:
        roles = CipherKeyDetector.detect(
            f"u=https%3A%2F%2Fexample.com%2Fv&c={LONG}&s=xyz"
        )
        assert roles == CipherRoleMap(url_key="u", sig_key="s", cipher_key="c")

    def test_length_32_is_neither_cipher_nor_signature(self) -> None:
        roles = CipherKeyDetector.detect(
            f"x={EXACT}&c={LONG}&s=xyz&u=https%3A%2F%2Fexample.com%2Fv"
        )
        assert roles.cipher_key == "c"
        assert roles.sig_key == "s"

    def test_length_32_only_candidate_for_cipher_fails(self) -> None:
        with pytest.raises(CipherRoleDetectionFailed):
            CipherKeyDetector.detect(f"x={EXACT}&s=xyz&u=https%3A%2F%2Fexample.com%2Fv")

    def test_length_32_only_candidate_for_signature_fails(self) -> None:
        with pytest.raises(CipherRoleDetectionFailed):
            CipherKeyDetector.detect(f"c={LONG}&x={EXACT}&u=https%3A%2F%2Fexample.com%2Fv")

    def test_long_url_is_not_a_cipher(self) -> None:
        long_url = "https%3A%2F%2Fexample.com%2F" + "v" * 60
        roles = CipherKeyDetector.detect(f"u={long_url}&c={LONG}&s=xyz")
        assert roles.cipher_key == "c"
        assert roles.url_key == "u"

    def test_multiple_url_values_first_wins(self) -> None:
        roles = CipherKeyDetector.detect(
            f"a=https%3A%2F%2Ffirst.example%2F&c={LONG}&s=xyz&b=https%3A%2F%2Fsecond.example%2F"
        )
        assert roles.url_key == "a"

    def test_missing_url_fails(self) -> None:
        with pytest.raises(CipherRoleDetectionFailed):
            CipherKeyDetector.detect(f"c={LONG}&s=xyz")


class TestDecipheredUrl:
    def test_url_reconstruction(self) -> None:
        engine = MagicMock()
        engine.decipher.return_value = "KEY123"
        stream = StreamFormat(
            itag=18,
            signatureCipher=f"c={LONG}&s=xyz&u=https%3A%2F%2Fexample.com%2Fv",
        )
        roles = CipherRoleMap(url_key="u", sig_key="s", cipher_key="c")

        url = deciphered_url(stream, "program", roles, engine)

        assert url == "https://example.com/v&xyz=KEY123"
        engine.decipher.assert_called_once_with(LONG, "program")

    def test_legacy_cipher_field(self) -> None:
        engine = MagicMock()
        engine.decipher.return_value = "KEY123"
        stream = StreamFormat(itag=18, cipher=f"c={LONG}&s=xyz&u=https%3A%2F%2Fexample.com%2Fv")
        roles = CipherRoleMap(url_key="u", sig_key="s", cipher_key="c")

        assert deciphered_url(stream, "program", roles, engine) == "https://example.com/v&xyz=KEY123"

    def test_engine_failure(self) -> None:
        engine = MagicMock()
        engine.decipher.return_value = None
        stream = StreamFormat(itag=18, signatureCipher=f"c={LONG}&s=xyz&u=https%3A%2F%2Fexample.com%2Fv")
        roles = CipherRoleMap(url_key="u", sig_key="s", cipher_key="c")

        assert deciphered_url(stream, "program", roles, engine) is None

    def test_stream_without_cipher(self) -> None:
        engine = MagicMock()
        stream = StreamFormat(itag=18, url="https://example.com/v")
        roles = CipherRoleMap(url_key="u", sig_key="s", cipher_key="c")

        assert deciphered_url(stream, "program", roles, engine) is None
        engine.decipher.assert_not_called()


class TestDecipherStreamingData:
    def _bundle(self, path: str) -> str:
        return f"c={LONG}&s=sig&u=https%3A%2F%2Fexample.com%2F{path}"

    def test_sets_url_on_every_format(self) -> None:
        engine = MagicMock()
        engine.decipher.return_value = "KEY"
        data = StreamingData(
            formats=[StreamFormat(itag=18, signatureCipher=self._bundle("a"))],
            adaptiveFormats=[
                StreamFormat(itag=137, signatureCipher=self._bundle("b")),
                StreamFormat(itag=140, signatureCipher=self._bundle("c")),
            ],
        )

        roles = decipher_streaming_data(data, "program", engine)

        assert roles.cipher_key == "c"
        assert [f.url for f in data.all_formats()] == [
            "https://example.com/a&sig=KEY",
            "https://example.com/b&sig=KEY",
            "https://example.com/c&sig=KEY",
        ]

    def test_single_failure_fails_everything(self) -> None:
        engine = MagicMock()
        engine.decipher.side_effect = ["KEY", None]
        data = StreamingData(
            formats=[
                StreamFormat(itag=18, signatureCipher=self._bundle("a")),
                StreamFormat(itag=22, signatureCipher=self._bundle("b")),
            ],
        )

        with pytest.raises(DecipherFailed):
            decipher_streaming_data(data, "program", engine)

    def test_role_detection_failure(self) -> None:
        engine = MagicMock()
        data = StreamingData(formats=[StreamFormat(itag=18, signatureCipher="s=xyz")])

        with pytest.raises(CipherRoleDetectionFailed):
            decipher_streaming_data(data, "program", engine)
        engine.decipher.assert_not_called()
