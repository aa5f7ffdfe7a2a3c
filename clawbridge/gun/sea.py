"""SEA-compatible signatures for Gun chat messages.

Gun's SEA module signs with ECDSA on P-256. A keypair is a set of base64url
strings: ``pub`` is ``x.y`` (the public point) and ``priv`` is the private
scalar ``d``. A signed value travels as::

    'SEA' + JSON({"m": payload, "s": signature})

where the signature is raw ``r||s`` in standard base64, computed over the
SHA-256 digest of the payload's JSON text.

Verification failure is a routine outcome for untrusted peer data, so
``verify`` returns None instead of raising.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

SEA_PREFIX = "SEA"
COORDINATE_BYTES = 32


@dataclass(frozen=True)
class SeaPair:
    """A SEA keypair. ``epub``/``epriv`` are the ECDH half, unused for signing."""

    pub: str
    priv: str
    epub: str = ""
    epriv: str = ""

    @classmethod
    def from_json(cls, raw: str) -> SeaPair:
        """Parse a keypair JSON string, as exported by ``SEA.pair()``.

        Raises:
            ValueError: If the JSON is invalid, ``pub``/``priv`` are missing,
                or the private key does not belong to the public key.
        """
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as err:
            raise ValueError(f"keypair is not valid JSON: {err}") from err
        if not isinstance(data, dict) or not data.get("pub") or not data.get("priv"):
            raise ValueError("keypair must be a JSON object with 'pub' and 'priv'")

        pair = cls(
            pub=str(data["pub"]),
            priv=str(data["priv"]),
            epub=str(data.get("epub") or ""),
            epriv=str(data.get("epriv") or ""),
        )
        if encode_public_key(_private_key(pair.priv).public_key()) != pair.pub:
            raise ValueError("keypair 'priv' does not match 'pub'")
        return pair

    @classmethod
    def generate(cls) -> SeaPair:
        """Create a fresh keypair (signing half plus ECDH half)."""
        signing = ec.generate_private_key(ec.SECP256R1())
        exchange = ec.generate_private_key(ec.SECP256R1())
        return cls(
            pub=encode_public_key(signing.public_key()),
            priv=_b64url_int(signing.private_numbers().private_value),
            epub=encode_public_key(exchange.public_key()),
            epriv=_b64url_int(exchange.private_numbers().private_value),
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))


# ── Encoding helpers ─────────────────────────────────────────────────────


def _b64url_int(value: int) -> str:
    raw = value.to_bytes(COORDINATE_BYTES, "big")
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _b64url_decode_int(data: str) -> int:
    padding = "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(data + padding)
    except Exception as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err
    if len(raw) != COORDINATE_BYTES:
        raise ValueError("P-256 key components must be 32 bytes")
    return int.from_bytes(raw, "big")


def encode_public_key(key: ec.EllipticCurvePublicKey) -> str:
    numbers = key.public_numbers()
    return f"{_b64url_int(numbers.x)}.{_b64url_int(numbers.y)}"


def decode_public_key(pub: str) -> ec.EllipticCurvePublicKey:
    """Decode a SEA ``x.y`` public key. Raises ValueError if malformed."""
    parts = pub.split(".")
    if len(parts) != 2:
        raise ValueError("SEA public key must be 'x.y'")
    x, y = (_b64url_decode_int(p) for p in parts)
    return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()


def _private_key(priv: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(_b64url_decode_int(priv), ec.SECP256R1())


def _json_text(value: Any) -> str:
    # Matches JSON.stringify: compact separators, raw unicode.
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _digest(value: Any) -> bytes:
    return hashlib.sha256(_json_text(value).encode("utf-8")).digest()


# ── Sign / verify ────────────────────────────────────────────────────────


def sign(payload: Any, pair: SeaPair) -> str:
    """Sign ``payload`` with ``pair`` and return the SEA envelope string."""
    der = _private_key(pair.priv).sign(_digest(payload), ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    raw = r.to_bytes(COORDINATE_BYTES, "big") + s.to_bytes(COORDINATE_BYTES, "big")
    envelope = {"m": payload, "s": base64.b64encode(raw).decode()}
    return SEA_PREFIX + json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def _parse_envelope(signed: Any) -> dict[str, Any] | None:
    if isinstance(signed, str):
        text = signed[len(SEA_PREFIX):] if signed.startswith(SEA_PREFIX + "{") else signed
        try:
            signed = json.loads(text)
        except json.JSONDecodeError:
            return None
    if not isinstance(signed, dict) or "m" not in signed or not isinstance(signed.get("s"), str):
        return None
    return signed


def verify(signed: Any, pub: str) -> Any | None:
    """Return the signed payload if ``signed`` was produced by ``pub``.

    Accepts the ``SEA{...}`` string form or an already-parsed envelope.
    Returns None for malformed envelopes, malformed keys and bad signatures.
    """
    envelope = _parse_envelope(signed)
    if envelope is None:
        return None
    try:
        key = decode_public_key(pub)
        raw = base64.b64decode(envelope["s"], validate=True)
    except (ValueError, TypeError):
        return None
    if len(raw) != 2 * COORDINATE_BYTES:
        return None

    r = int.from_bytes(raw[:COORDINATE_BYTES], "big")
    s = int.from_bytes(raw[COORDINATE_BYTES:], "big")
    try:
        key.verify(encode_dss_signature(r, s), _digest(envelope["m"]), ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, ValueError):
        return None

    message = envelope["m"]
    if isinstance(message, str):
        try:
            return json.loads(message)
        except json.JSONDecodeError:
            return message
    return message
