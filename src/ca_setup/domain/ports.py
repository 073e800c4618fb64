"""
Ports — Protocol-based interfaces for the stages of a CA material load.

The loader depends on these contracts only; concrete implementations are
wired by loader.create_loader(). Each stage is a Protocol, so any
object with the right method satisfies it without inheritance.

  bytes → PemParser → X509Decoder → ChainValidator
                                  → KeyMatcher
                                  → CrlValidator
  X509LoadResult → CaStore (caller side, only when valid)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import (
    ParsedCertificate,
    ParsedCrl,
    ParsedPrivateKey,
    PemParseOutcome,
    RawPemObject,
    X509LoadResult,
)
from ca_setup.result import Result


@runtime_checkable
class PemSerializable(Protocol):
    """Capability shared by every parsed variant: re-armor the original DER."""

    def to_pem(self) -> str: ...


@runtime_checkable
class PemParser(Protocol):
    """
    Port: split a PEM text blob into raw blocks, preserving file order.

    `source` names the input in error messages ("certificate bundle", ...).
    Malformed blocks become ParseErrors; parsing continues past them.
    """

    def parse(self, data: bytes, source: str) -> PemParseOutcome: ...


@runtime_checkable
class X509Decoder(Protocol):
    """Port: decode raw DER blocks into parsed certificates, keys and CRLs."""

    def decode_certificate(self, raw: RawPemObject, source: str) -> Result[ParsedCertificate]: ...

    def decode_private_key(self, raw: RawPemObject) -> Result[ParsedPrivateKey]: ...

    def decode_crl(self, raw: RawPemObject, source: str) -> Result[ParsedCrl]: ...


@runtime_checkable
class ChainValidator(Protocol):
    """Port: check signing links, validity windows and CA flags of a chain."""

    def validate(
        self, chain: Sequence[ParsedCertificate], now: datetime
    ) -> list[ValidationError]: ...


@runtime_checkable
class KeyMatcher(Protocol):
    """Port: find the chain position whose public key belongs to the private key."""

    def match(self, key: ParsedPrivateKey, chain: Sequence[ParsedCertificate]) -> Result[int]: ...


@runtime_checkable
class CrlValidator(Protocol):
    """Port: pair each CRL with its issuer and check signature and freshness."""

    def validate(
        self,
        crls: Sequence[ParsedCrl],
        chain: Sequence[ParsedCertificate],
        now: datetime,
    ) -> list[ValidationError]: ...


@runtime_checkable
class CaStore(Protocol):
    """
    Port: install validated material into the server's CA store.

    All-or-nothing: either every file is written or none is. A result
    carrying errors is refused.
    """

    def store(self, result: X509LoadResult) -> Result[int]: ...
