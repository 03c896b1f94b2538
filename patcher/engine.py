import os
import shutil
import tempfile
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel

from patcher import log
from patcher.backup import BackupStore, FileBackupStore
from patcher.config import PatchConfig
from patcher.errors import AmbiguousTargetError, ExtractionError
from patcher.extractor import extract_symbols
from patcher.locator import locate, splice
from patcher.synthesizer import build_fragment, is_applied

ENCODING = "utf-8"
# Keeps undecodable bytes intact through a decode/encode round trip
ENCODING_ERRORS = "surrogateescape"


class ApplyStatus(str, Enum):
    PATCHED = "patched"
    ALREADY_PATCHED = "already-patched"
    UNRECOGNIZED = "unrecognized"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not-found"


class CheckStatus(str, Enum):
    PATCHED = "patched"
    PATCHABLE = "not-patched-patchable"
    UNRECOGNIZED = "not-patched-unrecognized"
    NOT_FOUND = "not-found"


class RevertStatus(str, Enum):
    RESTORED = "restored"
    SKIPPED = "skipped"
    NOT_FOUND = "not-found"


class Target(BaseModel):
    path: str
    label: str


class ApplyResult(BaseModel):
    path: str
    label: str
    status: ApplyStatus
    detail: str = ""
    size_delta: Optional[int] = None
    backup_created: bool = False

    @property
    def ok(self) -> bool:
        return self.status in (ApplyStatus.PATCHED, ApplyStatus.ALREADY_PATCHED)


class CheckResult(BaseModel):
    path: str
    label: str
    status: CheckStatus
    detail: str = ""
    has_backup: bool = False

    @property
    def ok(self) -> bool:
        return self.status != CheckStatus.NOT_FOUND


class RevertResult(BaseModel):
    path: str
    label: str
    status: RevertStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return True


AnyResult = Union[ApplyResult, CheckResult, RevertResult]


def read_text(path: str) -> str:
    with open(path, 'rb') as f:
        return f.read().decode(ENCODING, ENCODING_ERRORS)


def write_text_atomic(path: str, text: str) -> None:
    write_bytes_atomic(path, text.encode(ENCODING, ENCODING_ERRORS))


def write_bytes_atomic(path: str, data: bytes) -> None:
    """Replace `path` in one step: write a sibling temp file, then os.replace."""
    directory = os.path.dirname(os.path.abspath(path))
    fh = tempfile.NamedTemporaryFile('wb', dir=directory, delete=False)
    tmp = fh.name
    try:
        with fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        if os.path.exists(path):
            shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except OSError:
        os.unlink(tmp)
        raise


class FilePatcher:
    """
    Applies, checks and reverts the auto-run fix on individual bundle files.

    Files are handled one at a time. I/O errors (permissions, full disk)
    propagate to the caller; every other outcome is reported as a result.
    """

    def __init__(self, config: Optional[PatchConfig] = None, store: Optional[BackupStore] = None):
        self.config = config or PatchConfig()
        self.store = store or FileBackupStore(self.config.backup_suffix)

    def apply(self, path: str, label: str) -> ApplyResult:
        """
        Patch one file.

        Order matters: the backup is saved (or found to exist already)
        before the live file is rewritten, so revert always has the
        untouched original.
        """
        if not os.path.isfile(path):
            log.fail(f"File not found: {path}")
            return ApplyResult(path=path, label=label, status=ApplyStatus.NOT_FOUND,
                               detail=f"File not found: {path}")

        with open(path, 'rb') as f:
            original = f.read()
        content = original.decode(ENCODING, ENCODING_ERRORS)

        if is_applied(content, self.config.binding_name):
            log.skip("Already patched")
            return ApplyResult(path=path, label=label, status=ApplyStatus.ALREADY_PATCHED)

        try:
            extraction = extract_symbols(content, self.config)
        except ExtractionError as e:
            log.fail(str(e))
            status = ApplyStatus.AMBIGUOUS if e.is_ambiguity else ApplyStatus.UNRECOGNIZED
            return ApplyResult(path=path, label=label, status=status, detail=f"{e.stage}: {e}")

        fragment = build_fragment(extraction.symbols, self.config.binding_name)

        try:
            point = locate(content, extraction.match.text)
        except AmbiguousTargetError as e:
            log.fail(str(e))
            return ApplyResult(path=path, label=label, status=ApplyStatus.AMBIGUOUS, detail=str(e))

        backup_created = self.store.save(path, original)
        if backup_created:
            log.echo("📦 Backup created")

        patched = splice(content, point, fragment)
        write_text_atomic(path, patched)

        delta = os.path.getsize(path) - self.store.size(path)
        log.ok(f"Patched (+{delta} bytes)")
        return ApplyResult(path=path, label=label, status=ApplyStatus.PATCHED,
                           detail=fragment.code, size_delta=delta, backup_created=backup_created)

    def revert(self, path: str, label: str) -> RevertResult:
        """Restore the original from backup. No backup is a no-op, never an error."""
        if not self.store.exists(path):
            if not os.path.exists(path):
                log.skip(f"Not found: {path}")
                return RevertResult(path=path, label=label, status=RevertStatus.NOT_FOUND,
                                    detail=f"File not found: {path}")
            log.skip("No backup, skipping")
            return RevertResult(path=path, label=label, status=RevertStatus.SKIPPED,
                                detail="No backup")

        write_bytes_atomic(path, self.store.load(path))
        log.ok("Restored")
        return RevertResult(path=path, label=label, status=RevertStatus.RESTORED,
                            detail=f"Restored from {self.store.describe(path)}")

    def check(self, path: str, label: str) -> CheckResult:
        """Read-only status: patched, patchable, or structure unrecognized."""
        if not os.path.isfile(path):
            log.fail("Not found")
            return CheckResult(path=path, label=label, status=CheckStatus.NOT_FOUND,
                               detail=f"File not found: {path}")

        content = read_text(path)
        has_backup = self.store.exists(path)

        if is_applied(content, self.config.binding_name):
            log.ok("PATCHED" + (" (backup exists)" if has_backup else ""))
            return CheckResult(path=path, label=label, status=CheckStatus.PATCHED, has_backup=has_backup)

        try:
            extract_symbols(content, self.config)
        except ExtractionError as e:
            log.warn("NOT PATCHED (may be incompatible)")
            return CheckResult(path=path, label=label, status=CheckStatus.UNRECOGNIZED,
                               detail=f"{e.stage}: {e}", has_backup=has_backup)

        log.echo("⬜ NOT PATCHED (patchable)")
        return CheckResult(path=path, label=label, status=CheckStatus.PATCHABLE, has_backup=has_backup)

    def run(self, mode: str, targets: List[Target]) -> List[AnyResult]:
        """Run `mode` over every target in order; one file's failure doesn't stop the rest."""
        operations = {"apply": self.apply, "check": self.check, "revert": self.revert}
        if mode not in operations:
            raise ValueError(f"Unknown mode: {mode}")

        results = []
        for target in targets:
            log.set_label_context(target.label)
            try:
                results.append(operations[mode](target.path, target.label))
            finally:
                log.clear_label_context()
        return results


def all_ok(results: List[AnyResult]) -> bool:
    return all(r.ok for r in results)
