"""
Validation errors — structured problem descriptions collected during a load.

Every problem found while validating CA material is a ValidationError value
appended to an ordered list. Nothing in the validation core raises these:
the caller inspects the list and decides whether to install anything.

ErrorKind is a closed enum so callers and tests can match on the kind
instead of parsing message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique


@unique
class ErrorKind(Enum):
    """Closed taxonomy of everything that can go wrong with CA material."""

    # --- Parsing ---
    PARSE_ERROR = "PARSE_ERROR"
    """Malformed PEM armor, undecodable Base64/DER or an unsupported label."""

    # --- Certificate chain ---
    EMPTY_BUNDLE = "EMPTY_BUNDLE"
    """The certificate bundle contains zero certificates."""

    CHAIN_BROKEN = "CHAIN_BROKEN"
    """Certificate at index i is not signed by the certificate at i+1."""

    UNTRUSTED_ROOT = "UNTRUSTED_ROOT"
    """The last certificate of the bundle is not self-signed."""

    EXPIRED_CERTIFICATE = "EXPIRED_CERTIFICATE"
    """notAfter is in the past."""

    NOT_YET_VALID_CERTIFICATE = "NOT_YET_VALID_CERTIFICATE"
    """notBefore is in the future."""

    NOT_A_CERTIFICATE_AUTHORITY = "NOT_A_CERTIFICATE_AUTHORITY"
    """A non-terminal certificate lacks basicConstraints CA=true."""

    # --- Private key ---
    INVALID_KEY = "INVALID_KEY"
    """The private key could not be parsed."""

    KEY_MISMATCH = "KEY_MISMATCH"
    """No certificate in the chain carries the key's public half."""

    # --- CRLs ---
    CRL_ISSUER_NOT_FOUND = "CRL_ISSUER_NOT_FOUND"
    """No chain certificate issued the CRL."""

    CRL_SIGNATURE_INVALID = "CRL_SIGNATURE_INVALID"
    """The CRL signature does not verify against its issuer."""

    CRL_EXPIRED = "CRL_EXPIRED"
    """The CRL's nextUpdate has passed."""

    # --- Installation ---
    STORE_ERROR = "STORE_ERROR"
    """Writing validated material to the CA store failed or was refused."""


@dataclass(frozen=True, slots=True)
class ValidationError:
    """
    One problem found in the supplied CA material.

    `index` is the position of the offending object in its own sequence
    (chain position, CRL position or PEM block ordinal) when one applies.

    >>> err = ValidationError(ErrorKind.CHAIN_BROKEN, "Certificate 0 is not signed by 1", 0)
    >>> str(err)
    'Certificate 0 is not signed by 1'
    """

    kind: ErrorKind
    message: str
    index: int | None = None

    def __str__(self) -> str:
        return self.message

    # ──────────────────────── Factories ────────────────────────

    @staticmethod
    def parse_error(source: str, position: int, reason: str) -> ValidationError:
        return ValidationError(
            ErrorKind.PARSE_ERROR,
            f"Could not parse PEM block {position} of {source}: {reason}",
            position,
        )

    @staticmethod
    def empty_bundle() -> ValidationError:
        return ValidationError(
            ErrorKind.EMPTY_BUNDLE,
            "Could not find any certificates in the certificate bundle",
        )

    @staticmethod
    def chain_broken(index: int, subject: str, issuer_subject: str) -> ValidationError:
        return ValidationError(
            ErrorKind.CHAIN_BROKEN,
            f"Certificate {index} ({subject}) is not signed by the next "
            f"certificate in the bundle ({issuer_subject})",
            index,
        )

    @staticmethod
    def untrusted_root(index: int, subject: str) -> ValidationError:
        return ValidationError(
            ErrorKind.UNTRUSTED_ROOT,
            f"Last certificate in the bundle ({subject}) is not a self-signed root",
            index,
        )

    @staticmethod
    def expired(index: int, subject: str) -> ValidationError:
        return ValidationError(
            ErrorKind.EXPIRED_CERTIFICATE,
            f"Certificate {index} ({subject}) has expired",
            index,
        )

    @staticmethod
    def not_yet_valid(index: int, subject: str) -> ValidationError:
        return ValidationError(
            ErrorKind.NOT_YET_VALID_CERTIFICATE,
            f"Certificate {index} ({subject}) is not yet valid",
            index,
        )

    @staticmethod
    def not_a_ca(index: int, subject: str) -> ValidationError:
        return ValidationError(
            ErrorKind.NOT_A_CERTIFICATE_AUTHORITY,
            f"Certificate {index} ({subject}) is not a certificate authority",
            index,
        )

    @staticmethod
    def invalid_key(reason: str) -> ValidationError:
        return ValidationError(
            ErrorKind.INVALID_KEY,
            f"Could not parse the private key: {reason}",
        )

    @staticmethod
    def key_mismatch() -> ValidationError:
        return ValidationError(
            ErrorKind.KEY_MISMATCH,
            "Private key does not match any certificate in the bundle",
        )

    @staticmethod
    def crl_issuer_not_found(index: int, issuer: str) -> ValidationError:
        return ValidationError(
            ErrorKind.CRL_ISSUER_NOT_FOUND,
            f"Could not find the issuer of CRL {index} ({issuer}) in the certificate bundle",
            index,
        )

    @staticmethod
    def crl_signature_invalid(index: int, issuer: str) -> ValidationError:
        return ValidationError(
            ErrorKind.CRL_SIGNATURE_INVALID,
            f"Signature of CRL {index} does not verify against its issuer ({issuer})",
            index,
        )

    @staticmethod
    def crl_expired(index: int, issuer: str) -> ValidationError:
        return ValidationError(
            ErrorKind.CRL_EXPIRED,
            f"CRL {index} ({issuer}) is past its nextUpdate time",
            index,
        )

    @staticmethod
    def store_error(reason: str) -> ValidationError:
        return ValidationError(
            ErrorKind.STORE_ERROR,
            f"Could not install CA material: {reason}",
        )
