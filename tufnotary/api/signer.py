# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Notary flavoured signing on top of securesystemslib signers.

securesystemslib signers produce hex encoded signatures (DER for ECDSA). The
notary server expects base64 signatures with a "method" field, and raw r||s
for ECDSA. ``NotarySigner`` converts between the two.
"""

import base64
import logging
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from securesystemslib.signer import CryptoSigner, Signature, Signer

from tufnotary.api.identity import PrivateKey

logger = logging.getLogger(__name__)

# securesystemslib scheme -> notary signature method
_METHODS = {
    "ecdsa-sha2-nistp256": "ecdsa",
    "ecdsa-sha2-nistp384": "ecdsa",
    "rsassa-pss-sha256": "rsapss",
    "ed25519": "eddsa",
}


class NotarySigner:
    """Sign payloads for a notary key-id.

    Several ``NotarySigner`` instances may wrap the same private key under
    different key-ids: a root key certificate and the raw targets key record
    have different key-ids but share the underlying key.

    Ed25519 keys can sign, but ``SigningIdentity`` cannot issue root
    certificates for them. Ed25519 is only usable by callers that build their
    own key records.

    Args:
        signer: securesystemslib signer holding the private key.
        keyid: notary key-id to put in produced signatures.
    """

    def __init__(self, signer: Signer, keyid: str):
        self._signer = signer
        self.keyid = keyid

    @classmethod
    def from_private_key(
        cls, private_key: PrivateKey, keyid: str
    ) -> "NotarySigner":
        return cls(CryptoSigner(private_key), keyid)

    def with_keyid(self, keyid: str) -> "NotarySigner":
        """Return a signer using the same private key under ``keyid``."""
        return NotarySigner(self._signer, keyid)

    def sign(self, payload: bytes) -> Signature:
        """Sign ``payload`` and return a notary style signature.

        Raises:
            ValueError: The signing scheme has no notary equivalent.
        """
        scheme = self._signer.public_key.scheme
        method = _METHODS.get(scheme)
        if method is None:
            raise ValueError(f"Unsupported signing scheme {scheme}")

        raw = bytes.fromhex(self._signer.sign(payload).signature)
        if method == "ecdsa":
            raw = _raw_ecdsa(raw, self._curve_size())

        sig = base64.b64encode(raw).decode("ascii")
        logger.debug(
            "Signed %d bytes with %s (%s)", len(payload), self.keyid[:7], method
        )
        return Signature(self.keyid, sig, {"method": method})

    def _curve_size(self) -> int:
        public = self._signer.public_key.keyval["public"]
        key = serialization.load_pem_public_key(public.encode("utf-8"))
        if not isinstance(key, ec.EllipticCurvePublicKey):
            raise ValueError("ECDSA scheme with a non-EC key")
        return (key.curve.key_size + 7) // 8


def _raw_ecdsa(der_signature: bytes, size: int) -> bytes:
    """Convert a DER ECDSA signature to fixed size r||s."""
    r, s = decode_dss_signature(der_signature)
    return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def load_private_key(
    data: bytes, passphrase: Optional[bytes] = None
) -> PrivateKey:
    """Load a PEM encoded private key.

    Raises:
        ValueError: The data is not a supported private key, or the
            passphrase is wrong.
        TypeError: A passphrase was given for an unencrypted key or vice versa.
    """
    return serialization.load_pem_private_key(  # type: ignore[return-value]
        data, password=passphrase
    )
