"""
Domain models — immutable values for raw PEM blocks and parsed CA material.

The parsed objects form a closed set of variants (certificate, private key,
CRL). Each keeps its original DER so it can be re-armored byte-for-byte,
and each exposes the capabilities validation needs: PEM serialization,
signature verification and temporal checks.

All models are frozen dataclasses. Equality of parsed objects is decided
by their DER encoding alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique

from asn1crypto import pem
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import (
    CertificateIssuerPublicKeyTypes,
    PrivateKeyTypes,
    PublicKeyTypes,
)

from ca_setup.domain.errors import ValidationError


@unique
class PemKind(Enum):
    """What a PEM block contains, derived from its BEGIN label."""

    CERTIFICATE = "CERTIFICATE"
    PRIVATE_KEY = "PRIVATE_KEY"
    CRL = "CRL"


@unique
class KeyAlgorithm(Enum):
    """Public-key algorithm family shared by a key pair and its certificates."""

    RSA = "RSA"
    EC = "EC"
    DSA = "DSA"
    ED25519 = "ED25519"
    ED448 = "ED448"
    UNKNOWN = "UNKNOWN"


@unique
class Validity(Enum):
    """Where a point in time falls relative to a certificate's validity window."""

    VALID = "VALID"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"


def _spki_der(public_key: PublicKeyTypes) -> bytes:
    """Canonical SubjectPublicKeyInfo encoding of a public key."""
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _armor(label: str, der: bytes) -> str:
    return pem.armor(label, der).decode("ascii")


@dataclass(frozen=True, slots=True)
class RawPemObject:
    """
    One decoded PEM block.

    `position` is the ordinal of the block within its source file, `label`
    the text from the BEGIN line, and `der` the Base64-decoded payload.
    """

    kind: PemKind
    label: str
    der: bytes = field(repr=False)
    position: int = 0


@dataclass(frozen=True, slots=True)
class ParsedCertificate:
    """
    An X.509 certificate with the fields chain validation relies on.

    `subject` and `issuer` are RFC 4514 strings; key identifiers are hex.
    The cryptography certificate object is kept for signature checks.
    """

    der: bytes = field(repr=False)
    subject: str
    issuer: str
    public_key: CertificateIssuerPublicKeyTypes = field(repr=False, compare=False)
    algorithm: KeyAlgorithm
    not_before: datetime
    not_after: datetime
    certificate: x509.Certificate = field(repr=False, compare=False)
    is_ca: bool = False
    subject_key_identifier: str | None = None
    authority_key_identifier: str | None = None

    def to_pem(self) -> str:
        return _armor("CERTIFICATE", self.der)

    def public_key_der(self) -> bytes:
        return _spki_der(self.public_key)

    def is_issued_by(self, issuer: ParsedCertificate) -> bool:
        """
        True when `issuer`'s subject names this certificate's issuer and
        `issuer`'s public key verifies this certificate's signature.
        """
        try:
            self.certificate.verify_directly_issued_by(issuer.certificate)
        except (InvalidSignature, UnsupportedAlgorithm, ValueError, TypeError):
            return False
        return True

    def is_self_signed(self) -> bool:
        return self.is_issued_by(self)

    def validity_at(self, now: datetime) -> Validity:
        if now < self.not_before:
            return Validity.NOT_YET_VALID
        if now > self.not_after:
            return Validity.EXPIRED
        return Validity.VALID


@dataclass(frozen=True, slots=True)
class ParsedPrivateKey:
    """
    A private key plus the public half derived from it.

    `label` is the PEM label the key was supplied under (PRIVATE KEY,
    RSA PRIVATE KEY, ...) so re-serialization keeps the original format.
    """

    der: bytes = field(repr=False)
    label: str
    algorithm: KeyAlgorithm
    key: PrivateKeyTypes = field(repr=False, compare=False)

    @property
    def public_key(self) -> PublicKeyTypes:
        return self.key.public_key()

    def public_key_der(self) -> bytes:
        return _spki_der(self.public_key)

    def to_pem(self) -> str:
        return _armor(self.label, self.der)


@dataclass(frozen=True, slots=True)
class ParsedCrl:
    """A certificate revocation list with the fields needed to pair and verify it."""

    der: bytes = field(repr=False)
    issuer: str
    last_update: datetime
    next_update: datetime | None
    signature: bytes = field(repr=False)
    crl: x509.CertificateRevocationList = field(repr=False, compare=False)
    authority_key_identifier: str | None = None
    revoked_serials: tuple[int, ...] = ()

    def to_pem(self) -> str:
        return _armor("X509 CRL", self.der)

    def is_signed_by(self, issuer: ParsedCertificate) -> bool:
        try:
            return self.crl.is_signature_valid(issuer.public_key)
        except (TypeError, ValueError):
            return False

    def is_stale_at(self, now: datetime) -> bool:
        """A CRL without nextUpdate never goes stale."""
        return self.next_update is not None and now > self.next_update


@dataclass(frozen=True, slots=True)
class PemParseOutcome:
    """Blocks successfully decoded from one PEM source, plus per-block failures."""

    objects: tuple[RawPemObject, ...] = ()
    errors: tuple[ValidationError, ...] = ()

    def of_kind(self, kind: PemKind) -> tuple[RawPemObject, ...]:
        return tuple(obj for obj in self.objects if obj.kind is kind)


@dataclass(frozen=True, slots=True)
class X509LoadResult:
    """
    Everything a load produced: parsed material and the ordered error list.

    The material is exposed whether or not errors were found; callers must
    check `is_valid` before trusting or persisting any of it.
    """

    chain: tuple[ParsedCertificate, ...] = ()
    key: ParsedPrivateKey | None = None
    key_index: int | None = None
    crls: tuple[ParsedCrl, ...] = ()
    errors: tuple[ValidationError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> list[str]:
        return [err.message for err in self.errors]
