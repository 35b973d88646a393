"""
On-disk persistence for the wallet vault.

Layout inside the vault home directory (mode 0700):
    .salt       raw salt bytes, mode 0600, written once per vault
    wallet.enc  serialized encrypted record, mode 0600

Secure deletion overwrites file contents with random bytes before unlinking.
On journaling or copy-on-write filesystems the old blocks may survive the
overwrite; full-disk encryption is the control that covers that case.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

WALLET_FILE_NAME = "wallet.enc"
SALT_FILE_NAME = ".salt"
DIR_MODE = 0o700
FILE_MODE = 0o600
DEFAULT_WIPE_PASSES = 3


@contextmanager
def _storage_errors(action: str, path: Path) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        reason = exc.strerror or exc.__class__.__name__
        raise StorageError(f"Failed to {action} {path}: {reason}. Check permissions and free disk space.") from exc


class VaultStore:
    """Filesystem-backed storage for the salt and the encrypted key blob."""

    def __init__(self, home: Union[str, Path], wipe_passes: int = DEFAULT_WIPE_PASSES):
        if wipe_passes < 1:
            raise ValueError("wipe_passes must be at least 1.")
        self.home = Path(home)
        self.wipe_passes = wipe_passes

    @property
    def blob_path(self) -> Path:
        return self.home / WALLET_FILE_NAME

    @property
    def salt_path(self) -> Path:
        return self.home / SALT_FILE_NAME

    def ensure_directory(self) -> None:
        """Create the vault directory with owner-only permissions if needed."""
        with _storage_errors("create vault directory", self.home):
            self.home.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            if stat.S_IMODE(self.home.stat().st_mode) != DIR_MODE:
                os.chmod(self.home, DIR_MODE)

    def blob_exists(self) -> bool:
        return self.blob_path.is_file()

    def salt_exists(self) -> bool:
        return self.salt_path.is_file()

    def read_salt(self) -> bytes:
        if not self.salt_exists():
            raise NotFoundError(f"No salt file at {self.salt_path}.")
        with _storage_errors("read salt file", self.salt_path):
            return self.salt_path.read_bytes()

    def write_salt_if_absent(self, salt: bytes) -> bytes:
        """
        Persist `salt` unless a salt file already exists.

        Returns:
            bytes: The salt now on disk (the existing one if it was present).
        """
        with _storage_errors("write salt file", self.salt_path):
            try:
                fd = os.open(self.salt_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
            except FileExistsError:
                return self.read_salt()
            with os.fdopen(fd, "wb") as handle:
                handle.write(salt)
                handle.flush()
                os.fsync(handle.fileno())
        return salt

    def read_blob(self) -> bytes:
        if not self.blob_exists():
            raise NotFoundError(f"No wallet found at {self.blob_path}.")
        with _storage_errors("read wallet file", self.blob_path):
            return self.blob_path.read_bytes()

    def write_blob(self, data: bytes) -> None:
        """Atomically replace the wallet file with `data` (temp file + rename)."""
        with _storage_errors("write wallet file", self.blob_path):
            fd, tmp_name = tempfile.mkstemp(dir=self.home, prefix=".wallet.", suffix=".tmp")
            try:
                os.fchmod(fd, FILE_MODE)
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.blob_path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise

    def secure_delete(self) -> bool:
        """
        Overwrite and remove the wallet file, then the salt file.

        Returns:
            bool: True if at least one file was removed, False if none existed.
        """
        removed = False
        for path in (self.blob_path, self.salt_path):
            if path.exists():
                self._wipe_file(path)
                removed = True
        if removed:
            logger.info("Vault files securely removed from %s", self.home)
        return removed

    def _wipe_file(self, path: Path) -> None:
        with _storage_errors("securely delete", path):
            size = path.stat().st_size
            with open(path, "r+b") as handle:
                for _ in range(self.wipe_passes):
                    handle.seek(0)
                    handle.write(os.urandom(size))
                    handle.flush()
                    os.fsync(handle.fileno())
            path.unlink()
