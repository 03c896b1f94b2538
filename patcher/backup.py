"""
Backup storage keyed by target path.

The first backup of a file is the only trustworthy copy of the vendor's
original bundle, so both stores are write-once: `save` never replaces an
existing entry. Revert always restores from whatever `load` returns.
"""
import os
import shutil
import tempfile
from typing import Dict


class BackupStore:
    """Interface: path -> original bytes, write-once."""

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def save(self, path: str, data: bytes) -> bool:
        """Store `data` unless a backup exists. Returns True if it was written."""
        raise NotImplementedError

    def load(self, path: str) -> bytes:
        raise NotImplementedError

    def size(self, path: str) -> int:
        return len(self.load(path))

    def describe(self, path: str) -> str:
        return path


class FileBackupStore(BackupStore):
    """Backups live next to the target as `<path><suffix>`."""

    def __init__(self, suffix: str = ".bak"):
        self.suffix = suffix

    def backup_path(self, path: str) -> str:
        return path + self.suffix

    def exists(self, path: str) -> bool:
        return os.path.exists(self.backup_path(path))

    def save(self, path: str, data: bytes) -> bool:
        backup = self.backup_path(path)
        if os.path.exists(backup):
            return False

        # link() publishes the finished file and refuses an existing backup
        directory = os.path.dirname(os.path.abspath(backup))
        fd, tmp = tempfile.mkstemp(prefix='.backup-', dir=directory)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            shutil.copystat(path, tmp)
            try:
                os.link(tmp, backup)
            except FileExistsError:
                return False
        finally:
            os.unlink(tmp)
        return True

    def load(self, path: str) -> bytes:
        with open(self.backup_path(path), 'rb') as f:
            return f.read()

    def size(self, path: str) -> int:
        return os.path.getsize(self.backup_path(path))

    def describe(self, path: str) -> str:
        return self.backup_path(path)


class MemoryBackupStore(BackupStore):
    """In-process stand-in for tests and dry runs."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def exists(self, path: str) -> bool:
        return path in self._data

    def save(self, path: str, data: bytes) -> bool:
        if path in self._data:
            return False
        self._data[path] = bytes(data)
        return True

    def load(self, path: str) -> bytes:
        try:
            return self._data[path]
        except KeyError:
            raise FileNotFoundError(f"No backup for {path}") from None

    def describe(self, path: str) -> str:
        return f"memory:{path}"
