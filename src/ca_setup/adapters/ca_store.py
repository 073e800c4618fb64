"""
CA store adapter — installs validated material as PEM files.

Implements the CaStore port with an all-or-nothing write:
  1. Refuse results that carry validation errors or no key
  2. Stage every file as a temporary file next to its destination
  3. Set existing files aside, then move each staged file into place
  4. On any failure, restore the set-aside files and remove the staged
     ones; the previous CA store is left as it was

File layout (one PEM block after another, as re-armored from the parsed DER):
  ca_crt.pem  ← every certificate in bundle order
  ca_key.pem  ← the private key (mode 0640)
  ca_crl.pem  ← every CRL (empty when none were supplied)
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

import structlog

from ca_setup.domain.errors import ValidationError
from ca_setup.domain.models import X509LoadResult
from ca_setup.domain.ports import PemSerializable
from ca_setup.result import Result

log = structlog.get_logger()

CERT_MODE = 0o644
KEY_MODE = 0o640


def render_pem(objects: Iterable[PemSerializable]) -> str:
    return "".join(obj.to_pem() for obj in objects)


class FileCaStore:
    """
    Write certificates, key and CRLs to the configured CA store paths.

    All exceptions are caught at this adapter boundary via Result.from_computation().
    """

    def __init__(self, cert_path: Path, key_path: Path, crl_path: Path) -> None:
        self._cert_path = cert_path
        self._key_path = key_path
        self._crl_path = crl_path

    def store(self, result: X509LoadResult) -> Result[int]:
        """
        Install `result` into the CA store.

        Returns Result[int] with the number of PEM objects written.
        Returns Failure(STORE_ERROR) without touching any file when the
        result is not valid or writing fails.
        """
        if not result.is_valid:
            return Result.failure(
                ValidationError.store_error(
                    f"refusing to install material with {len(result.errors)} validation error(s)"
                )
            )
        if result.key is None:
            return Result.failure(ValidationError.store_error("no private key to install"))

        key = result.key
        files = [
            (self._cert_path, render_pem(result.chain), CERT_MODE),
            (self._key_path, key.to_pem(), KEY_MODE),
            (self._crl_path, render_pem(result.crls), CERT_MODE),
        ]
        return Result.from_computation(
            lambda: self._write_all(files, len(result.chain) + 1 + len(result.crls)),
            lambda exc: ValidationError.store_error(str(exc)),
        )

    def _write_all(self, files: list[tuple[Path, str, int]], objects: int) -> int:
        staged: list[tuple[Path, Path]] = []
        try:
            for target, content, mode in files:
                staged.append((self._stage(target, content, mode), target))
            self._commit(staged)
        finally:
            for temp, _ in staged:
                temp.unlink(missing_ok=True)

        log.info(
            "store.written",
            cert_path=str(self._cert_path),
            key_path=str(self._key_path),
            crl_path=str(self._crl_path),
            objects=objects,
        )
        return objects

    @classmethod
    def _commit(cls, staged: list[tuple[Path, Path]]) -> None:
        """
        Move every staged file onto its target.

        Existing targets are set aside first. If any move fails, targets
        already committed get their previous content back (or are removed
        when there was none) and the error propagates.
        """
        committed: list[tuple[Path, Path | None]] = []
        try:
            for temp, target in staged:
                backup = cls._set_aside(target)
                try:
                    os.replace(temp, target)
                except OSError:
                    if backup is not None:
                        os.replace(backup, target)
                    raise
                committed.append((target, backup))
        except OSError:
            for target, backup in reversed(committed):
                if backup is not None:
                    os.replace(backup, target)
                else:
                    target.unlink(missing_ok=True)
            log.error("store.rolled_back", restored=len(committed))
            raise

        for _, backup in committed:
            if backup is not None:
                backup.unlink(missing_ok=True)

    @staticmethod
    def _set_aside(target: Path) -> Path | None:
        """Rename an existing regular file at `target` to a backup beside it."""
        if not target.is_file():
            return None
        fd, name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".orig")
        os.close(fd)
        backup = Path(name)
        try:
            os.replace(target, backup)
        except OSError:
            backup.unlink(missing_ok=True)
            raise
        return backup

    @staticmethod
    def _stage(target: Path, content: str, mode: int) -> Path:
        """Write `content` to a temporary file in `target`'s directory."""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        temp = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="ascii") as handle:
                handle.write(content)
            temp.chmod(mode)
        except OSError:
            temp.unlink(missing_ok=True)
            raise
        return temp
