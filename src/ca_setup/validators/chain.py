"""
Certificate chain validator.

The bundle's order is the intended signing order: the certificate at
position i must be signed by the one at i+1, and the last one must be a
self-signed root. Every link is checked even after a failure so the caller
sees all problems in one pass.

Emission order per position: ChainBroken, NotACertificateAuthority, then
the validity-window error. UntrustedRoot comes last.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import ParsedCertificate, Validity

log = structlog.get_logger()


def _temporal_error(index: int, cert: ParsedCertificate, now: datetime) -> ValidationError | None:
    match cert.validity_at(now):
        case Validity.EXPIRED:
            return ValidationError.expired(index, cert.subject)
        case Validity.NOT_YET_VALID:
            return ValidationError.not_yet_valid(index, cert.subject)
    return None


class CertChainValidator:
    """Implements the ChainValidator port."""

    def validate(
        self, chain: Sequence[ParsedCertificate], now: datetime
    ) -> list[ValidationError]:
        if not chain:
            return [ValidationError.empty_bundle()]

        errors: list[ValidationError] = []
        last = len(chain) - 1

        for index, cert in enumerate(chain):
            if index < last:
                issuer = chain[index + 1]
                if not cert.is_issued_by(issuer):
                    errors.append(
                        ValidationError.chain_broken(index, cert.subject, issuer.subject)
                    )
                if not cert.is_ca:
                    errors.append(ValidationError.not_a_ca(index, cert.subject))

            if (temporal := _temporal_error(index, cert, now)) is not None:
                errors.append(temporal)

        root = chain[last]
        if not root.is_self_signed():
            errors.append(ValidationError.untrusted_root(last, root.subject))

        log.info("chain.validated", certificates=len(chain), errors=len(errors))
        return errors
