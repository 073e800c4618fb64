"""
Key matcher — locate the certificate that belongs to the supplied private key.

Comparison is on the canonical SubjectPublicKeyInfo DER of the public key
derived from the private key, never on how either file happened to be
encoded. Certificates of a different algorithm family are skipped before
any encoding is computed.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import ParsedCertificate, ParsedPrivateKey
from ca_setup.result import Result

log = structlog.get_logger()


def public_keys_equal(key: ParsedPrivateKey, cert: ParsedCertificate) -> bool:
    return key.public_key_der() == cert.public_key_der()


class PublicKeyMatcher:
    """Implements the KeyMatcher port."""

    def match(self, key: ParsedPrivateKey, chain: Sequence[ParsedCertificate]) -> Result[int]:
        """
        Return the index of the first certificate whose public key is the
        public half of `key`, or Failure(KEY_MISMATCH).
        """
        for index, cert in enumerate(chain):
            if cert.algorithm is not key.algorithm:
                continue
            if public_keys_equal(key, cert):
                log.info("key.matched", index=index, subject=cert.subject)
                return Result.success(index)

        log.info("key.unmatched", algorithm=key.algorithm.value, certificates=len(chain))
        return Result.failure(ValidationError.key_mismatch())
