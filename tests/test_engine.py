import errno
import os

import pytest

from conftest import EXPECTED_FRAGMENT, HANDLER, make_bundle, read_bytes
from patcher.backup import MemoryBackupStore
from patcher.config import PatchConfig
from patcher.engine import (
    ApplyStatus, CheckStatus, FilePatcher, RevertStatus, Target, all_ok,
    write_bytes_atomic,
)


def write(path, text):
    with open(path, "wb") as f:
        f.write(text.encode("utf-8") if isinstance(text, str) else text)


def test_apply_patches_and_backs_up(bundle_file, bundle):
    result = FilePatcher().apply(bundle_file, "workbench")

    assert result.status == ApplyStatus.PATCHED
    assert result.ok
    assert result.backup_created
    assert result.size_delta == len(EXPECTED_FRAGMENT)
    assert read_bytes(bundle_file + ".bak") == bundle.encode("utf-8")

    patched = read_bytes(bundle_file).decode("utf-8")
    assert patched.count(EXPECTED_FRAGMENT + HANDLER) == 1
    assert patched == bundle.replace(HANDLER, EXPECTED_FRAGMENT + HANDLER)


def test_apply_is_idempotent(bundle_file):
    patcher = FilePatcher()
    patcher.apply(bundle_file, "workbench")
    first = read_bytes(bundle_file)
    mtime = os.path.getmtime(bundle_file)

    second = patcher.apply(bundle_file, "workbench")

    assert second.status == ApplyStatus.ALREADY_PATCHED
    assert second.ok
    assert read_bytes(bundle_file) == first
    assert os.path.getmtime(bundle_file) == mtime


def test_revert_restores_original_bytes(tmp_path):
    # CRLF line endings and a stray non-UTF-8 byte must survive untouched
    original = b"// header\r\n\xff" + make_bundle().encode("utf-8") + b"\r\n"
    path = str(tmp_path / "main.js")
    write(path, original)
    patcher = FilePatcher()

    assert patcher.apply(path, "jetskiAgent").status == ApplyStatus.PATCHED
    assert read_bytes(path) != original
    assert read_bytes(path).replace(EXPECTED_FRAGMENT.encode(), b"", 1) == original

    result = patcher.revert(path, "jetskiAgent")
    assert result.status == RevertStatus.RESTORED
    assert read_bytes(path) == original


def test_ambiguous_target_leaves_file_untouched(tmp_path):
    text = make_bundle(handler=HANDLER + "," + HANDLER)
    path = str(tmp_path / "dup.js")
    write(path, text)

    result = FilePatcher().apply(path, "workbench")

    assert result.status == ApplyStatus.AMBIGUOUS
    assert not result.ok
    assert read_bytes(path) == text.encode("utf-8")
    assert not os.path.exists(path + ".bak")


def test_hook_tie_is_reported_as_ambiguous(tmp_path):
    text = make_bundle(effects="", tail=";mn(()=>{go(1)},[a]);Xe(()=>{go(2)},[b]);return y}")
    path = str(tmp_path / "tie.js")
    write(path, text)

    result = FilePatcher().apply(path, "workbench")
    assert result.status == ApplyStatus.AMBIGUOUS
    assert "ambiguous-scheduling-hook" in result.detail

    result = FilePatcher(PatchConfig(hook_tie_policy="first")).apply(path, "workbench")
    assert result.status == ApplyStatus.PATCHED


@pytest.mark.parametrize("kwargs", [
    {"handler": "y=Mt(_=>{go(_)},[])"},
    {"policy": ""},
    {"secure": ""},
    {"effects": "", "tail": ";return y}"},
])
def test_unrecognized_structure_leaves_file_untouched(tmp_path, kwargs):
    text = make_bundle(**kwargs)
    path = str(tmp_path / "other.js")
    write(path, text)

    result = FilePatcher().apply(path, "workbench")

    assert result.status == ApplyStatus.UNRECOGNIZED
    assert read_bytes(path) == text.encode("utf-8")
    assert not os.path.exists(path + ".bak")


def test_missing_file_is_reported(tmp_path):
    path = str(tmp_path / "missing.js")
    patcher = FilePatcher()

    assert patcher.apply(path, "workbench").status == ApplyStatus.NOT_FOUND
    assert patcher.check(path, "workbench").status == CheckStatus.NOT_FOUND
    assert patcher.revert(path, "workbench").status == RevertStatus.NOT_FOUND
    assert not os.path.exists(path)


def test_existing_backup_is_never_overwritten(bundle_file, bundle):
    patcher = FilePatcher()
    patcher.apply(bundle_file, "workbench")
    original_backup = read_bytes(bundle_file + ".bak")

    # an app update replaces the live file with a new, unpatched build
    updated = bundle.replace("var R=2;", "var R=3;")
    write(bundle_file, updated)

    result = patcher.apply(bundle_file, "workbench")

    assert result.status == ApplyStatus.PATCHED
    assert not result.backup_created
    assert read_bytes(bundle_file + ".bak") == original_backup


def test_revert_without_backup_is_skipped(bundle_file, bundle):
    result = FilePatcher().revert(bundle_file, "workbench")
    assert result.status == RevertStatus.SKIPPED
    assert result.ok
    assert read_bytes(bundle_file) == bundle.encode("utf-8")


def test_revert_keeps_backup(bundle_file):
    patcher = FilePatcher()
    patcher.apply(bundle_file, "workbench")
    patcher.revert(bundle_file, "workbench")
    assert os.path.exists(bundle_file + ".bak")


def test_check_classifies_files(tmp_path, bundle_file):
    patcher = FilePatcher()

    result = patcher.check(bundle_file, "workbench")
    assert result.status == CheckStatus.PATCHABLE
    assert not result.has_backup

    patcher.apply(bundle_file, "workbench")
    result = patcher.check(bundle_file, "workbench")
    assert result.status == CheckStatus.PATCHED
    assert result.has_backup

    other = str(tmp_path / "other.js")
    write(other, "var nothing=1;")
    result = patcher.check(other, "jetskiAgent")
    assert result.status == CheckStatus.UNRECOGNIZED
    assert result.detail.startswith("no-handler-match")


def test_check_never_writes(bundle_file, bundle):
    FilePatcher().check(bundle_file, "workbench")
    assert read_bytes(bundle_file) == bundle.encode("utf-8")
    assert not os.path.exists(bundle_file + ".bak")


def test_custom_backup_suffix(bundle_file):
    FilePatcher(PatchConfig(backup_suffix=".orig")).apply(bundle_file, "workbench")
    assert os.path.exists(bundle_file + ".orig")
    assert not os.path.exists(bundle_file + ".bak")


def test_memory_backup_store(bundle_file, bundle):
    store = MemoryBackupStore()
    patcher = FilePatcher(store=store)

    result = patcher.apply(bundle_file, "workbench")
    assert result.status == ApplyStatus.PATCHED
    assert result.size_delta == len(EXPECTED_FRAGMENT)
    assert store.load(bundle_file) == bundle.encode("utf-8")
    assert not os.path.exists(bundle_file + ".bak")

    assert patcher.revert(bundle_file, "workbench").status == RevertStatus.RESTORED
    assert read_bytes(bundle_file) == bundle.encode("utf-8")


def test_run_continues_after_failures(tmp_path, bundle_file):
    targets = [
        Target(path=str(tmp_path / "missing.js"), label="workbench"),
        Target(path=bundle_file, label="jetskiAgent"),
    ]
    results = FilePatcher().run("apply", targets)

    assert [r.status for r in results] == [ApplyStatus.NOT_FOUND, ApplyStatus.PATCHED]
    assert [r.label for r in results] == ["workbench", "jetskiAgent"]
    assert not all_ok(results)


def test_run_rejects_unknown_mode(bundle_file):
    with pytest.raises(ValueError):
        FilePatcher().run("explode", [Target(path=bundle_file, label="workbench")])


def test_write_errors_propagate(bundle_file, monkeypatch):
    def boom(*args, **kwargs):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr("patcher.engine.os.replace", boom)
    with pytest.raises(PermissionError):
        FilePatcher().apply(bundle_file, "workbench")
    # no temp files left behind next to the target
    assert sorted(os.listdir(os.path.dirname(bundle_file))) == sorted(
        [os.path.basename(bundle_file), os.path.basename(bundle_file) + ".bak"]
    )


def test_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    path = str(tmp_path / "main.js")
    write(path, b"before")

    def full_disk(fd):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr("patcher.engine.os.fsync", full_disk)
    with pytest.raises(OSError):
        write_bytes_atomic(path, b"after")

    assert os.listdir(str(tmp_path)) == ["main.js"]
    assert read_bytes(path) == b"before"


def test_failed_backup_does_not_block_a_later_apply(bundle_file, bundle, monkeypatch):
    def full_disk(fd):
        raise OSError(errno.ENOSPC, "No space left on device")

    patcher = FilePatcher()
    with monkeypatch.context() as m:
        m.setattr("patcher.backup.os.fsync", full_disk)
        with pytest.raises(OSError):
            patcher.apply(bundle_file, "workbench")

    # neither a truncated backup nor a stray temp file survives
    assert os.listdir(os.path.dirname(bundle_file)) == [os.path.basename(bundle_file)]
    assert read_bytes(bundle_file) == bundle.encode("utf-8")

    assert patcher.apply(bundle_file, "workbench").backup_created
    assert read_bytes(bundle_file + ".bak") == bundle.encode("utf-8")
    assert patcher.revert(bundle_file, "workbench").status == RevertStatus.RESTORED
    assert read_bytes(bundle_file) == bundle.encode("utf-8")
