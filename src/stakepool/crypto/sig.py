# src/stakepool/crypto/sig.py
from __future__ import annotations

"""Ed25519 signatures over tx envelopes.

Keys and signatures travel as hex (base64/base64url is also accepted on
input). The signed message is the canonical JSON of
{tx_type, sender, nonce, payload}; the signature itself is not part of it.
"""

import base64
import binascii
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

Json = Dict[str, Any]

PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64


def decode_key_bytes(s: str) -> bytes:
    """Decode a hex or base64/base64url string; raises ValueError."""
    text = str(s or "").strip()
    if not text:
        raise ValueError("empty key material")
    try:
        return bytes.fromhex(text)
    except ValueError:
        pass
    try:
        padded = text + "=" * (-len(text) % 4)
        return base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_"))
    except (binascii.Error, ValueError) as e:
        raise ValueError("key material is neither hex nor base64") from e


def is_valid_public_key(pubkey: str) -> bool:
    try:
        return len(decode_key_bytes(pubkey)) == PUBLIC_KEY_BYTES
    except ValueError:
        return False


def canonical_tx_message(*, tx_type: str, sender: str, nonce: int, payload: Json) -> bytes:
    obj: Json = {
        "tx_type": str(tx_type).strip().lower(),
        "sender": str(sender).strip(),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        sig_b = decode_key_bytes(sig)
        key = Ed25519PublicKey.from_public_bytes(decode_key_bytes(pubkey))
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def _private_key(privkey: str) -> Ed25519PrivateKey:
    raw = decode_key_bytes(privkey)
    # 64-byte keys carry the public half after the 32-byte seed.
    if len(raw) == 2 * PUBLIC_KEY_BYTES:
        raw = raw[:PUBLIC_KEY_BYTES]
    if len(raw) != PUBLIC_KEY_BYTES:
        raise ValueError("ed25519 private key must be a 32-byte seed")
    return Ed25519PrivateKey.from_private_bytes(raw)


def public_key_of(privkey: str) -> str:
    return _private_key(privkey).public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def sign_ed25519(*, message: bytes, privkey: str) -> str:
    return _private_key(privkey).sign(message).hex()


def sign_tx_envelope(tx: Json, *, privkey: str) -> Json:
    """Return a copy of a {tx_type, sender, nonce, payload} envelope with `sig` set."""
    payload = tx.get("payload") if isinstance(tx.get("payload"), dict) else {}
    msg = canonical_tx_message(
        tx_type=str(tx.get("tx_type") or ""),
        sender=str(tx.get("sender") or ""),
        nonce=int(tx.get("nonce") or 0),
        payload=payload,
    )
    out = dict(tx)
    out["payload"] = payload
    out["sig"] = sign_ed25519(message=msg, privkey=privkey)
    return out
