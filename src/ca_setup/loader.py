"""
X509Loader — the facade that validates a full set of CA material.

Pure orchestration: every stage is injected via ports, so the loader does
no I/O and holds no state between calls.

  cert bundle ─ parse ─ decode ─→ chain ─→ CertChainValidator ─┐
  private key ─ parse ─ decode ─→ key ───→ KeyMatcher ─────────┤→ X509LoadResult
  CRL bundle ── parse ─ decode ─→ crls ──→ CrlChainValidator ──┘

Unlike a short-circuiting pipeline, all stages always run and their errors
are concatenated in a fixed order (certificate parsing, chain, key, CRL
parsing, CRLs) so a single call reports the complete diagnostic picture.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog

from ca_setup.adapters.pem_parser import PemBundleParser
from ca_setup.adapters.x509_decoder import CryptographyX509Decoder
from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import (
    ParsedCertificate,
    ParsedCrl,
    ParsedPrivateKey,
    PemKind,
    PemParseOutcome,
    X509LoadResult,
)
from ca_setup.domain.ports import (
    ChainValidator,
    CrlValidator,
    KeyMatcher,
    PemParser,
    X509Decoder,
)
from ca_setup.result import Result
from ca_setup.validators.chain import CertChainValidator
from ca_setup.validators.crl import CrlChainValidator
from ca_setup.validators.key_matcher import PublicKeyMatcher

log = structlog.get_logger()

CERT_BUNDLE_SOURCE = "certificate bundle"
PRIVATE_KEY_SOURCE = "private key"
CRL_CHAIN_SOURCE = "CRL chain"


def _block_errors(
    outcome: PemParseOutcome, expected: PemKind, source: str
) -> list[ValidationError]:
    """Parse errors plus blocks of the wrong kind. Unordered."""
    unexpected = [
        ValidationError.parse_error(source, obj.position, f"unexpected {obj.label} block")
        for obj in outcome.objects
        if obj.kind is not expected
    ]
    return [*outcome.errors, *unexpected]


def _by_position(errors: list[ValidationError]) -> list[ValidationError]:
    return sorted(errors, key=lambda err: err.index or 0)


class X509Loader:
    """
    Load and cross-validate a certificate bundle, private key and CRL chain.

    The result exposes chain, key and CRLs unconditionally; callers must
    check `result.is_valid` before trusting or installing any of it.
    """

    def __init__(
        self,
        parser: PemParser,
        decoder: X509Decoder,
        chain_validator: ChainValidator,
        key_matcher: KeyMatcher,
        crl_validator: CrlValidator,
    ) -> None:
        self._parser = parser
        self._decoder = decoder
        self._chain_validator = chain_validator
        self._key_matcher = key_matcher
        self._crl_validator = crl_validator

    def load_and_validate(
        self,
        cert_bundle: bytes,
        private_key: bytes,
        crl_bundle: bytes | None = None,
        now: datetime | None = None,
    ) -> X509LoadResult:
        """
        Run every stage over the supplied byte streams.

        `now` pins the clock for validity and freshness checks; it defaults
        to the current UTC time, and a naive `now` is taken to be UTC.
        Identical inputs and `now` always produce an equal X509LoadResult.
        """
        if now is None:
            now = datetime.now(UTC)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        errors: list[ValidationError] = []

        chain = self._load_chain(cert_bundle, errors)
        errors.extend(self._chain_validator.validate(chain, now))

        key = self._load_key(private_key, errors)
        key_index: int | None = None
        if key is not None:
            key_index = (
                self._key_matcher.match(key, chain)
                .peek_failure(errors.append)
                .either(lambda index: index, lambda _: None)
            )

        crls: tuple[ParsedCrl, ...] = ()
        if crl_bundle is not None:
            crls = self._load_crls(crl_bundle, errors)
            errors.extend(self._crl_validator.validate(crls, chain, now))

        log.info(
            "loader.complete",
            certificates=len(chain),
            key_index=key_index,
            crls=len(crls),
            errors=len(errors),
        )

        return X509LoadResult(
            chain=chain,
            key=key,
            key_index=key_index,
            crls=crls,
            errors=tuple(errors),
        )

    # ─────────────────────── Stages ───────────────────────

    def _load_chain(
        self, data: bytes, errors: list[ValidationError]
    ) -> tuple[ParsedCertificate, ...]:
        outcome = self._parser.parse(data, CERT_BUNDLE_SOURCE)
        bundle_errors = _block_errors(outcome, PemKind.CERTIFICATE, CERT_BUNDLE_SOURCE)

        chain: list[ParsedCertificate] = []
        for raw in outcome.of_kind(PemKind.CERTIFICATE):
            self._decoder.decode_certificate(raw, CERT_BUNDLE_SOURCE).either(
                chain.append, bundle_errors.append
            )
        errors.extend(_by_position(bundle_errors))
        return tuple(chain)

    def _load_key(self, data: bytes, errors: list[ValidationError]) -> ParsedPrivateKey | None:
        outcome = self._parser.parse(data, PRIVATE_KEY_SOURCE)
        keys = outcome.of_kind(PemKind.PRIVATE_KEY)

        result: Result[ParsedPrivateKey]
        if outcome.errors:
            result = Result.failure(ValidationError.invalid_key(outcome.errors[0].message))
        elif len(outcome.objects) != 1 or not keys:
            result = Result.failure(
                ValidationError.invalid_key(
                    f"expected exactly one private key block, found {len(outcome.objects)} "
                    f"PEM block(s) of which {len(keys)} private key(s)"
                )
            )
        else:
            result = self._decoder.decode_private_key(keys[0])

        return result.peek_failure(errors.append).either(lambda key: key, lambda _: None)

    def _load_crls(self, data: bytes, errors: list[ValidationError]) -> tuple[ParsedCrl, ...]:
        outcome = self._parser.parse(data, CRL_CHAIN_SOURCE)
        bundle_errors = _block_errors(outcome, PemKind.CRL, CRL_CHAIN_SOURCE)

        crls: list[ParsedCrl] = []
        for raw in outcome.of_kind(PemKind.CRL):
            self._decoder.decode_crl(raw, CRL_CHAIN_SOURCE).either(
                crls.append, bundle_errors.append
            )
        errors.extend(_by_position(bundle_errors))
        return tuple(crls)


def create_loader() -> X509Loader:
    """Wire the loader with the cryptography-backed implementations."""
    return X509Loader(
        parser=PemBundleParser(),
        decoder=CryptographyX509Decoder(),
        chain_validator=CertChainValidator(),
        key_matcher=PublicKeyMatcher(),
        crl_validator=CrlChainValidator(),
    )
