"""
Unit tests for the public-key matcher.

Test categories:
  - Match: returns the chain position of the certificate holding the key
  - Mismatch: foreign key of the same family → KeyMismatch
  - Fast reject: different algorithm family never reaches key comparison
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ca_setup.domain.errors import ErrorKind
from ca_setup.validators import key_matcher as key_matcher_module
from ca_setup.validators.key_matcher import PublicKeyMatcher
from tests.assertions import ResultAssertions
from tests.conftest import ROOT_NAME, Pki, build_certificate, parsed, parsed_key


@pytest.fixture()
def matcher() -> PublicKeyMatcher:
    return PublicKeyMatcher()


class TestMatch:
    """
    GIVEN a private key whose public half is in the chain
    WHEN matched
    THEN the index of that certificate is returned.
    """

    def test_matches_first_certificate(self, matcher: PublicKeyMatcher, pki: Pki) -> None:
        chain = [parsed(pki.intermediate), parsed(pki.root)]

        result = matcher.match(parsed_key(pki.intermediate_key), chain)

        assert ResultAssertions.assert_success(result) == 0

    def test_matches_root(self, matcher: PublicKeyMatcher, pki: Pki) -> None:
        chain = [parsed(pki.intermediate), parsed(pki.root)]

        result = matcher.match(parsed_key(pki.root_key), chain)

        assert ResultAssertions.assert_success(result) == 1

    def test_ec_key_matches_ec_certificate_under_rsa_root(
        self, matcher: PublicKeyMatcher, pki: Pki
    ) -> None:
        ec_intermediate = build_certificate(
            "EC Intermediate", pki.ec_key.public_key(), ROOT_NAME, pki.root_key
        )
        chain = [parsed(ec_intermediate), parsed(pki.root)]

        assert ResultAssertions.assert_success(matcher.match(parsed_key(pki.ec_key), chain)) == 0


class TestMismatch:
    def test_foreign_key_is_key_mismatch(self, matcher: PublicKeyMatcher, pki: Pki) -> None:
        chain = [parsed(pki.intermediate), parsed(pki.root)]

        result = matcher.match(parsed_key(pki.foreign_key), chain)

        ResultAssertions.assert_failure(result, ErrorKind.KEY_MISMATCH)

    def test_empty_chain_is_key_mismatch(self, matcher: PublicKeyMatcher, pki: Pki) -> None:
        result = matcher.match(parsed_key(pki.intermediate_key), [])

        ResultAssertions.assert_failure(result, ErrorKind.KEY_MISMATCH)


class TestAlgorithmFamilyFastReject:
    """
    GIVEN an EC key and a chain of RSA certificates only
    WHEN matched
    THEN KeyMismatch is returned without comparing any key encodings.
    """

    def test_skips_comparison(
        self, matcher: PublicKeyMatcher, pki: Pki, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        compare = MagicMock(return_value=True)
        monkeypatch.setattr(key_matcher_module, "public_keys_equal", compare)
        chain = [parsed(pki.intermediate), parsed(pki.root)]

        result = matcher.match(parsed_key(pki.ec_key), chain)

        ResultAssertions.assert_failure(result, ErrorKind.KEY_MISMATCH)
        compare.assert_not_called()

    def test_same_family_is_compared(
        self, matcher: PublicKeyMatcher, pki: Pki, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        compare = MagicMock(return_value=False)
        monkeypatch.setattr(key_matcher_module, "public_keys_equal", compare)
        chain = [parsed(pki.intermediate), parsed(pki.root)]

        matcher.match(parsed_key(pki.foreign_key), chain)

        assert compare.call_count == 2
