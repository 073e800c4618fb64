"""
X.509 decoder adapter — DER blocks into parsed certificates, keys and CRLs.

Implements the X509Decoder port using cryptography (PyCA):
  - x509.load_der_x509_certificate / load_der_x509_crl for metadata
  - serialization.load_der_private_key for PKCS#8 and traditional keys

Every library exception is caught at this boundary via
Result.from_computation() and becomes a ValidationError: ParseError for
certificates and CRLs, InvalidKeyError for the private key. Missing
optional extensions (SKI, AKI, basicConstraints) are not failures.
"""

from __future__ import annotations

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509.extensions import ExtensionNotFound

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import (
    KeyAlgorithm,
    ParsedCertificate,
    ParsedCrl,
    ParsedPrivateKey,
    RawPemObject,
)
from ca_setup.result import Result

log = structlog.get_logger()


# ─────────────────────── Extension Extraction ───────────────────────


def _extract_ski(cert: x509.Certificate) -> str | None:
    """Subject Key Identifier as hex, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return ext.value.digest.hex()
    except (ExtensionNotFound, ValueError):
        return None


def _extract_aki(extensions: x509.Extensions) -> str | None:
    """Authority Key Identifier as hex, or None if absent or issuer/serial-only."""
    try:
        ext = extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
        if ext.value.key_identifier is not None:
            return ext.value.key_identifier.hex()
        return None
    except (ExtensionNotFound, ValueError):
        return None


def _extract_is_ca(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except (ExtensionNotFound, ValueError):
        return False


def algorithm_of(key: object) -> KeyAlgorithm:
    """Algorithm family of a public or private key object."""
    match key:
        case rsa.RSAPublicKey() | rsa.RSAPrivateKey():
            return KeyAlgorithm.RSA
        case ec.EllipticCurvePublicKey() | ec.EllipticCurvePrivateKey():
            return KeyAlgorithm.EC
        case dsa.DSAPublicKey() | dsa.DSAPrivateKey():
            return KeyAlgorithm.DSA
        case ed25519.Ed25519PublicKey() | ed25519.Ed25519PrivateKey():
            return KeyAlgorithm.ED25519
        case ed448.Ed448PublicKey() | ed448.Ed448PrivateKey():
            return KeyAlgorithm.ED448
    return KeyAlgorithm.UNKNOWN


# ─────────────────────── DER → Model ───────────────────────


def _der_to_certificate(der: bytes) -> ParsedCertificate:
    cert = x509.load_der_x509_certificate(der)
    public_key = cert.public_key()
    return ParsedCertificate(
        der=der,
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        public_key=public_key,
        algorithm=algorithm_of(public_key),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        certificate=cert,
        is_ca=_extract_is_ca(cert),
        subject_key_identifier=_extract_ski(cert),
        authority_key_identifier=_extract_aki(cert.extensions),
    )


def _der_to_private_key(der: bytes, label: str) -> ParsedPrivateKey:
    key = serialization.load_der_private_key(der, password=None)
    algorithm = algorithm_of(key)
    if algorithm is KeyAlgorithm.UNKNOWN:
        raise ValueError(f"unsupported key type {type(key).__name__}")
    return ParsedPrivateKey(der=der, label=label, algorithm=algorithm, key=key)


def _der_to_crl(der: bytes) -> ParsedCrl:
    crl = x509.load_der_x509_crl(der)
    return ParsedCrl(
        der=der,
        issuer=crl.issuer.rfc4514_string(),
        last_update=crl.last_update_utc,
        next_update=crl.next_update_utc,
        signature=crl.signature,
        crl=crl,
        authority_key_identifier=_extract_aki(crl.extensions),
        revoked_serials=tuple(revoked.serial_number for revoked in crl),
    )


# ─────────────────────── Public Decoder Class ───────────────────────


class CryptographyX509Decoder:
    """
    Decode RawPemObject payloads with cryptography.

    Implements the X509Decoder port. Stateless.
    """

    def decode_certificate(self, raw: RawPemObject, source: str) -> Result[ParsedCertificate]:
        return Result.from_computation(
            lambda: _der_to_certificate(raw.der),
            lambda exc: ValidationError.parse_error(
                source, raw.position, f"invalid certificate: {exc}"
            ),
        ).peek(
            lambda cert: log.debug(
                "decoder.certificate", subject=cert.subject, ski=cert.subject_key_identifier
            )
        )

    def decode_private_key(self, raw: RawPemObject) -> Result[ParsedPrivateKey]:
        return Result.from_computation(
            lambda: _der_to_private_key(raw.der, raw.label),
            lambda exc: ValidationError.invalid_key(str(exc) or type(exc).__name__),
        )

    def decode_crl(self, raw: RawPemObject, source: str) -> Result[ParsedCrl]:
        return Result.from_computation(
            lambda: _der_to_crl(raw.der),
            lambda exc: ValidationError.parse_error(source, raw.position, f"invalid CRL: {exc}"),
        ).peek(
            lambda crl: log.debug(
                "decoder.crl", issuer=crl.issuer, revoked=len(crl.revoked_serials)
            )
        )
