"""Tests for SEA-compatible signing and verification."""

import json

import pytest

from clawbridge.gun import sea
from clawbridge.gun.sea import SeaPair


@pytest.fixture(scope="module")
def alice() -> SeaPair:
    return SeaPair.generate()


@pytest.fixture(scope="module")
def bob() -> SeaPair:
    return SeaPair.generate()


PAYLOAD = {"type": "chat", "from": "A", "to": "B", "when": 100, "text": "héllo"}


class TestSeaPair:
    def test_generate_shape(self, alice):
        x, y = alice.pub.split(".")
        assert len(x) == 43 and len(y) == 43
        assert len(alice.priv) == 43
        assert alice.epub and alice.epriv

    def test_json_roundtrip(self, alice):
        assert SeaPair.from_json(alice.to_json()) == alice

    def test_from_json_rejects_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            SeaPair.from_json("{nope")

    def test_from_json_requires_pub_and_priv(self, alice):
        with pytest.raises(ValueError, match="'pub' and 'priv'"):
            SeaPair.from_json(json.dumps({"pub": alice.pub}))

    def test_from_json_rejects_mismatched_priv(self, alice, bob):
        raw = json.dumps({"pub": alice.pub, "priv": bob.priv})
        with pytest.raises(ValueError, match="does not match"):
            SeaPair.from_json(raw)


class TestSignVerify:
    def test_envelope_format(self, alice):
        signed = sea.sign(PAYLOAD, alice)
        assert signed.startswith("SEA{")
        envelope = json.loads(signed[3:])
        assert envelope["m"] == PAYLOAD
        assert isinstance(envelope["s"], str)

    def test_verify_with_signer_key(self, alice):
        assert sea.verify(sea.sign(PAYLOAD, alice), alice.pub) == PAYLOAD

    def test_verify_parsed_envelope(self, alice):
        envelope = json.loads(sea.sign(PAYLOAD, alice)[3:])
        assert sea.verify(envelope, alice.pub) == PAYLOAD

    def test_verify_wrong_key_returns_none(self, alice, bob):
        assert sea.verify(sea.sign(PAYLOAD, alice), bob.pub) is None

    def test_verify_tampered_payload_returns_none(self, alice):
        envelope = json.loads(sea.sign(PAYLOAD, alice)[3:])
        envelope["m"]["text"] = "tampered"
        assert sea.verify(envelope, alice.pub) is None

    @pytest.mark.parametrize("signed", [None, "", "SEA{", "plain text", 42, {"m": 1}, {"m": 1, "s": "!!"}])
    def test_verify_malformed_envelope_returns_none(self, alice, signed):
        assert sea.verify(signed, alice.pub) is None

    @pytest.mark.parametrize("pub", ["", "abc", "a.b.c", "not-base64!.x"])
    def test_verify_malformed_key_returns_none(self, alice, pub):
        assert sea.verify(sea.sign(PAYLOAD, alice), pub) is None

    def test_string_payload_roundtrip(self, alice):
        assert sea.verify(sea.sign("just text", alice), alice.pub) == "just text"
