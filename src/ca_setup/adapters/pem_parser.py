"""
PEM bundle parser adapter — splits ASCII-armored text into raw DER blocks.

Implements the PemParser port using:
  - re: locate BEGIN/END armor lines so each block is handled on its own
  - asn1crypto.pem: strict unarmoring of a single block (Base64 → DER)

A bundle is loosely ordered text: blocks may be separated by comments or
blank lines, and one bad block must not hide the others. Every block is
therefore unarmored independently; a failure produces one ParseError for
that block's position and scanning resumes at the next BEGIN line.

Block order is preserved exactly as it appears in the source, since the
certificate bundle's order is the intended signing order.
"""

from __future__ import annotations

import re

import structlog
from asn1crypto import pem

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import PemKind, PemParseOutcome, RawPemObject
from ca_setup.result import Result

log = structlog.get_logger()

_BEGIN = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")
_END = re.compile(rb"-----END ([A-Z0-9 ]+)-----")

LABEL_KINDS: dict[str, PemKind] = {
    "CERTIFICATE": PemKind.CERTIFICATE,
    "X509 CERTIFICATE": PemKind.CERTIFICATE,
    "X509 CRL": PemKind.CRL,
    "CRL": PemKind.CRL,
    "PRIVATE KEY": PemKind.PRIVATE_KEY,
    "RSA PRIVATE KEY": PemKind.PRIVATE_KEY,
    "EC PRIVATE KEY": PemKind.PRIVATE_KEY,
    "DSA PRIVATE KEY": PemKind.PRIVATE_KEY,
}


def _unarmor_block(block: bytes, label: str) -> bytes:
    """Decode one armored block to DER. Raises ValueError on any defect."""
    object_type, headers, der = pem.unarmor(block)
    if object_type != label:
        raise ValueError(f"expected {label} block, found {object_type}")
    if headers:
        raise ValueError("encrypted or header-carrying PEM blocks are not supported")
    if not der:
        raise ValueError("block has an empty body")
    return der


class PemBundleParser:
    """
    Parse a PEM text blob into an ordered tuple of RawPemObject.

    Implements the PemParser port. Pure: no I/O, no state between calls.
    """

    def parse(self, data: bytes, source: str) -> PemParseOutcome:
        """
        Scan `data` for armored blocks and decode each one.

        Returns a PemParseOutcome whose `objects` keep source order and whose
        `errors` hold one ParseError per rejected block. Input with no BEGIN
        line at all yields an empty outcome; the caller decides if that is
        a problem.
        """
        objects: list[RawPemObject] = []
        errors: list[ValidationError] = []
        cursor = 0
        position = 0

        while (begin := _BEGIN.search(data, cursor)) is not None:
            label = begin.group(1).decode("ascii")
            end = _END.search(data, begin.end())
            next_begin = _BEGIN.search(data, begin.end())

            if end is None:
                errors.append(
                    ValidationError.parse_error(source, position, f"missing END line for {label}")
                )
                break

            if next_begin is not None and next_begin.start() < end.start():
                errors.append(
                    ValidationError.parse_error(source, position, f"missing END line for {label}")
                )
                cursor = next_begin.start()
                position += 1
                continue

            cursor = end.end()
            end_label = end.group(1).decode("ascii")
            if end_label != label:
                errors.append(
                    ValidationError.parse_error(
                        source, position, f"BEGIN {label} closed by END {end_label}"
                    )
                )
                position += 1
                continue

            result = self._decode_block(data[begin.start():end.end()], label, source, position)
            result.either(objects.append, errors.append)
            position += 1

        for error in errors:
            log.warning(
                "pem.block_rejected", source=source, position=error.index, reason=error.message
            )

        log.debug("pem.parsed", source=source, blocks=position, accepted=len(objects))
        return PemParseOutcome(objects=tuple(objects), errors=tuple(errors))

    @staticmethod
    def _decode_block(block: bytes, label: str, source: str, position: int) -> Result[RawPemObject]:
        kind = LABEL_KINDS.get(label)
        if kind is None:
            return Result.failure(
                ValidationError.parse_error(source, position, f"unsupported PEM label {label!r}")
            )

        return Result.from_computation(
            lambda: _unarmor_block(block, label),
            lambda exc: ValidationError.parse_error(source, position, str(exc)),
        ).map(lambda der: RawPemObject(kind=kind, label=label, der=der, position=position))
