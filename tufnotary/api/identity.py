# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Signing identity and root certificate handling.

A ``SigningIdentity`` binds the publisher's public key to a validity window and
to a candidate root certificate. The candidate certificate is only published
when the root key has to be replaced: its to-be-signed part is what gets
compared against the certificate in an already published root.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.codec.der import encoder as der_encoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc5280

from tufnotary.api._payload import Key
from tufnotary.api.exceptions import UnsupportedKeyTypeError

logger = logging.getLogger(__name__)

PrivateKey = Union[ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey]
PublicKey = Union[ec.EllipticCurvePublicKey, rsa.RSAPublicKey]


def _algorithm(public_key: object) -> str:
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return "ecdsa"
    if isinstance(public_key, rsa.RSAPublicKey):
        return "rsa"
    raise UnsupportedKeyTypeError(
        f"Unsupported signing key type {type(public_key).__name__}"
    )


def spki_bytes(public_key: PublicKey) -> bytes:
    """Return the DER SubjectPublicKeyInfo of ``public_key``."""
    return public_key.public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )


def normalize_tbs(tbs_certificate: bytes) -> bytes:
    """Return DER TBSCertificate bytes with the serial number zeroed.

    Two certificates minted from the same template differ only in their
    (random) serial number: after normalization they compare equal.

    Raises:
        ValueError: ``tbs_certificate`` is not a DER TBSCertificate.
    """
    try:
        tbs, rest = der_decoder.decode(
            tbs_certificate, asn1Spec=rfc5280.TBSCertificate()
        )
    except PyAsn1Error as e:
        raise ValueError("Failed to decode TBSCertificate") from e
    if rest:
        raise ValueError("Trailing data after TBSCertificate")

    tbs["serialNumber"] = 0
    return der_encoder.encode(tbs)


def same_tbs(a: x509.Certificate, b: x509.Certificate) -> bool:
    """Compare the to-be-signed parts of two certificates, ignoring serials."""
    return normalize_tbs(a.tbs_certificate_bytes) == normalize_tbs(
        b.tbs_certificate_bytes
    )


def generate_certificate(
    private_key: PrivateKey,
    gun: str,
    not_before: datetime,
    not_after: datetime,
) -> x509.Certificate:
    """Mint a self-signed code signing certificate for repository ``gun``.

    Everything except the serial number is derived from the arguments, so
    certificates minted for the same key, repository and validity window have
    identical normalized to-be-signed bytes.
    """
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, gun),
        ]
    )
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CODE_SIGNING]),
            critical=False,
        )
        .add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=True,
        )
        .sign(private_key, hashes.SHA256())
    )


@dataclass(frozen=True)
class SigningIdentity:
    """The publisher's signing identity for one run.

    Attributes:
        public_key: DER encoded SubjectPublicKeyInfo.
        algorithm: "ecdsa" or "rsa".
        not_before: Start of the validity window (UTC).
        not_after: End of the validity window (UTC). Also the root expiry.
        certificate: Candidate root certificate for the key.
    """

    public_key: bytes
    algorithm: str
    not_before: datetime
    not_after: datetime
    certificate: x509.Certificate

    @classmethod
    def from_private_key(
        cls,
        private_key: PrivateKey,
        gun: str,
        not_after: datetime,
        not_before: Optional[datetime] = None,
        validity: timedelta = timedelta(days=10 * 365),
    ) -> "SigningIdentity":
        """Derive an identity with a freshly minted self-signed certificate.

        ``not_before`` defaults to ``not_after - validity`` so that repeated
        runs with the same arguments derive the same certificate template.
        """
        algorithm = _algorithm(private_key.public_key())
        not_after = _utc(not_after)
        not_before = _utc(not_before) if not_before else not_after - validity
        if not_before >= not_after:
            raise ValueError("Certificate validity window is empty")

        certificate = generate_certificate(
            private_key, gun, not_before, not_after
        )
        return cls(
            spki_bytes(private_key.public_key()),
            algorithm,
            not_before,
            not_after,
            certificate,
        )

    @classmethod
    def from_certificate(
        cls, private_key: PrivateKey, certificate: x509.Certificate
    ) -> "SigningIdentity":
        """Derive an identity from an externally issued certificate.

        Raises:
            ValueError: The certificate does not certify ``private_key``.
        """
        public_key = spki_bytes(private_key.public_key())
        if spki_bytes(certificate.public_key()) != public_key:
            raise ValueError("certificate does not match root key")

        return cls(
            public_key,
            _algorithm(private_key.public_key()),
            certificate.not_valid_before_utc,
            certificate.not_valid_after_utc,
            certificate,
        )

    @property
    def spki(self) -> bytes:
        return self.public_key

    def certificate_key(self) -> Key:
        """Return the certificate-backed key record for the root role."""
        pem = self.certificate.public_bytes(Encoding.PEM)
        return Key.from_public_bytes(f"{self.algorithm}-x509", pem)

    def public_key_record(self) -> Key:
        """Return the raw key record used for the targets role."""
        return Key.from_public_bytes(self.algorithm, self.public_key)

    def matches_key(self, key: Key) -> bool:
        """Return True if ``key`` is a certificate for this identity's key."""
        return spki_bytes(key.certificate().public_key()) == self.public_key


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)
