"""
CRL chain validator — every supplied CRL must come from a chain certificate.

Issuer lookup: when the CRL carries an Authority Key Identifier and a
certificate carries a Subject Key Identifier, the identifiers decide the
match on their own. Only when one side lacks an identifier is the CRL
issuer DN compared with the certificate subject DN.

A CRL whose issuer is not in the chain gets exactly one error; its
signature and freshness are not examined.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import ParsedCertificate, ParsedCrl

log = structlog.get_logger()


def _issued(crl: ParsedCrl, cert: ParsedCertificate) -> bool:
    if crl.authority_key_identifier is not None and cert.subject_key_identifier is not None:
        return crl.authority_key_identifier == cert.subject_key_identifier
    return crl.issuer == cert.subject


def find_issuer(
    crl: ParsedCrl, chain: Sequence[ParsedCertificate]
) -> ParsedCertificate | None:
    """First chain certificate that issued `crl`, in chain order."""
    return next((cert for cert in chain if _issued(crl, cert)), None)


class CrlChainValidator:
    """Implements the CrlValidator port."""

    def validate(
        self,
        crls: Sequence[ParsedCrl],
        chain: Sequence[ParsedCertificate],
        now: datetime,
    ) -> list[ValidationError]:
        errors: list[ValidationError] = []

        for index, crl in enumerate(crls):
            issuer = find_issuer(crl, chain)
            if issuer is None:
                errors.append(ValidationError.crl_issuer_not_found(index, crl.issuer))
                continue

            if not crl.is_signed_by(issuer):
                errors.append(ValidationError.crl_signature_invalid(index, issuer.subject))
            if crl.is_stale_at(now):
                errors.append(ValidationError.crl_expired(index, crl.issuer))

        if crls:
            log.info("crl.validated", crls=len(crls), errors=len(errors))
        return errors
