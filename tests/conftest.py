"""
Shared test fixtures and helpers for the ca-setup test suite.

Provides a small programmatic PKI built with cryptography's builders:
RSA root and intermediate CAs, a foreign key pair, an EC key, and helpers
to issue certificates and CRLs and render them as PEM text.

All validity windows are relative to NOW, which is also the clock pinned
into loader and validator calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from ca_setup.adapters.x509_decoder import CryptographyX509Decoder
from ca_setup.domain.models import (
    ParsedCertificate,
    ParsedCrl,
    ParsedPrivateKey,
    PemKind,
    RawPemObject,
)

NOW = datetime.now(UTC).replace(microsecond=0)

ROOT_NAME = "Test Root CA"
INTERMEDIATE_NAME = "Test Intermediate CA"
FOREIGN_NAME = "Foreign CA"


# ─────────────────────── Builders ───────────────────────


def name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def build_certificate(
    subject: str,
    public_key: rsa.RSAPublicKey | ec.EllipticCurvePublicKey,
    issuer: str,
    signing_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    *,
    ca: bool = True,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
    with_key_identifiers: bool = True,
) -> x509.Certificate:
    """Issue a certificate for `public_key` signed by `signing_key`."""
    builder = (
        x509.CertificateBuilder()
        .subject_name(name(subject))
        .issuer_name(name(issuer))
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=1))
        .not_valid_after(not_after or NOW + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if with_key_identifiers:
        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False
        ).add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
    return builder.sign(signing_key, hashes.SHA256())


def build_crl(
    issuer: str,
    signing_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    *,
    last_update: datetime | None = None,
    next_update: datetime | None = None,
    aki_public_key: rsa.RSAPublicKey | ec.EllipticCurvePublicKey | None = None,
    revoked_serials: tuple[int, ...] = (),
) -> x509.CertificateRevocationList:
    """Issue a CRL under `issuer`'s name signed by `signing_key`."""
    last = last_update or NOW - timedelta(hours=1)
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(name(issuer))
        .last_update(last)
        .next_update(next_update or NOW + timedelta(days=30))
    )
    for serial in revoked_serials:
        builder = builder.add_revoked_certificate(
            x509.RevokedCertificateBuilder().serial_number(serial).revocation_date(last).build()
        )
    if aki_public_key is not None:
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(aki_public_key), critical=False
        )
    return builder.sign(signing_key, hashes.SHA256())


# ─────────────────────── PEM rendering ───────────────────────


def cert_pem(*certs: x509.Certificate) -> bytes:
    return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in certs)


def crl_pem(*crls: x509.CertificateRevocationList) -> bytes:
    return b"".join(crl.public_bytes(serialization.Encoding.PEM) for crl in crls)


def key_pem(
    key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    private_format: serialization.PrivateFormat = serialization.PrivateFormat.PKCS8,
) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM, private_format, serialization.NoEncryption()
    )


# ─────────────────────── Parsed model helpers ───────────────────────

_decoder = CryptographyX509Decoder()


def parsed(cert: x509.Certificate) -> ParsedCertificate:
    raw = RawPemObject(
        kind=PemKind.CERTIFICATE,
        label="CERTIFICATE",
        der=cert.public_bytes(serialization.Encoding.DER),
    )
    return _decoder.decode_certificate(raw, "test").value()


def parsed_key(key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey) -> ParsedPrivateKey:
    der = key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    raw = RawPemObject(kind=PemKind.PRIVATE_KEY, label="PRIVATE KEY", der=der)
    return _decoder.decode_private_key(raw).value()


def parsed_crl(crl: x509.CertificateRevocationList) -> ParsedCrl:
    raw = RawPemObject(
        kind=PemKind.CRL,
        label="X509 CRL",
        der=crl.public_bytes(serialization.Encoding.DER),
    )
    return _decoder.decode_crl(raw, "test").value()


# ─────────────────────── Fixtures ───────────────────────


@dataclass(frozen=True)
class Pki:
    """A two-level CA hierarchy plus unrelated key material."""

    root_key: rsa.RSAPrivateKey
    intermediate_key: rsa.RSAPrivateKey
    foreign_key: rsa.RSAPrivateKey
    ec_key: ec.EllipticCurvePrivateKey
    root: x509.Certificate
    intermediate: x509.Certificate

    def crl(self, **kwargs: object) -> x509.CertificateRevocationList:
        """CRL issued by the root with matching AKI."""
        return build_crl(
            ROOT_NAME,
            self.root_key,
            aki_public_key=self.root_key.public_key(),
            **kwargs,  # type: ignore[arg-type]
        )


@pytest.fixture(scope="session")
def rsa_keys() -> tuple[rsa.RSAPrivateKey, rsa.RSAPrivateKey, rsa.RSAPrivateKey]:
    return tuple(  # type: ignore[return-value]
        rsa.generate_private_key(public_exponent=65537, key_size=2048) for _ in range(3)
    )


@pytest.fixture(scope="session")
def pki(rsa_keys: tuple[rsa.RSAPrivateKey, ...]) -> Pki:
    """
    Root CA (self-signed) → intermediate CA, both RSA and both CA=true.

    The intermediate is the certificate the bundle leads with; its key is
    the one installed alongside the bundle.
    """
    root_key, intermediate_key, foreign_key = rsa_keys
    root = build_certificate(ROOT_NAME, root_key.public_key(), ROOT_NAME, root_key)
    intermediate = build_certificate(
        INTERMEDIATE_NAME, intermediate_key.public_key(), ROOT_NAME, root_key
    )
    return Pki(
        root_key=root_key,
        intermediate_key=intermediate_key,
        foreign_key=foreign_key,
        ec_key=ec.generate_private_key(ec.SECP256R1()),
        root=root,
        intermediate=intermediate,
    )


@dataclass(frozen=True)
class CaFiles:
    """Input files for `ca-setup setup` plus the store directory it installs into."""

    cert_bundle: Path
    private_key: Path
    crl_chain: Path
    cadir: Path

    def setup_args(self, *, crl: bool = True) -> list[str]:
        args = [
            "setup",
            "--cert-bundle",
            str(self.cert_bundle),
            "--private-key",
            str(self.private_key),
        ]
        if crl:
            args += ["--crl-chain", str(self.crl_chain)]
        return args


@pytest.fixture()
def ca_files(tmp_path: Path, pki: Pki, monkeypatch: pytest.MonkeyPatch) -> CaFiles:
    """
    A valid bundle, key and CRL chain on disk, with the store pointed at tmp_path.
    """
    files = CaFiles(
        cert_bundle=tmp_path / "bundle.pem",
        private_key=tmp_path / "key.pem",
        crl_chain=tmp_path / "crl.pem",
        cadir=tmp_path / "ca",
    )
    files.cert_bundle.write_bytes(cert_pem(pki.intermediate, pki.root))
    files.private_key.write_bytes(key_pem(pki.intermediate_key))
    files.crl_chain.write_bytes(crl_pem(pki.crl()))
    monkeypatch.setenv("CA_SETUP_STORE__CADIR", str(files.cadir))
    monkeypatch.delenv("CA_SETUP_LOG_LEVEL", raising=False)
    return files
