import os

import pytest

from docagent.document import README_PATH, ManagedDocument, write_text_atomic

# ---------------------------------------------------------------------------
# Backup / restore round trips
# ---------------------------------------------------------------------------

def test_restore_without_prior_document_removes_file(package_root):
    document = ManagedDocument(package_root)
    assert document.backup() is None

    document.write("# Generated\n")
    assert document.has_changed()

    document.restore()
    assert not document.path.exists()
    assert document.has_changed() is False

def test_restore_with_prior_content_puts_it_back(package_root):
    path = package_root / README_PATH
    path.write_text("original C\n")
    document = ManagedDocument(package_root)
    assert document.backup() == "original C\n"

    document.write("something else")
    document.restore()
    assert path.read_text() == "original C\n"

def test_restore_recreates_deleted_document(package_root):
    path = package_root / README_PATH
    path.write_text("original")
    document = ManagedDocument(package_root)
    document.backup()

    path.unlink()
    document.restore()
    assert path.read_text() == "original"

def test_restore_is_idempotent(package_root):
    (package_root / README_PATH).write_text("original")
    document = ManagedDocument(package_root)
    document.backup()
    document.write("changed")

    document.restore()
    document.restore()
    assert document.read() == "original"

def test_backup_is_taken_once(package_root):
    document = ManagedDocument(package_root)
    document.backup()
    with pytest.raises(RuntimeError):
        document.backup()

def test_original_is_not_affected_by_later_writes(package_root):
    (package_root / README_PATH).write_text("v1")
    document = ManagedDocument(package_root)
    document.backup()
    document.write("v2")
    assert document.original == "v1"

# ---------------------------------------------------------------------------
# Change detection
# ---------------------------------------------------------------------------

def test_unchanged_document_is_not_changed(package_root):
    (package_root / README_PATH).write_text("same")
    document = ManagedDocument(package_root)
    document.backup()
    document.write("same")
    assert document.has_changed() is False

def test_empty_new_document_is_not_changed(package_root):
    document = ManagedDocument(package_root)
    document.backup()
    document.write("")
    assert document.has_changed() is False

def test_allowed_dir_is_document_parent(package_root):
    document = ManagedDocument(package_root)
    assert document.allowed_dir.as_posix() == "_dev/build/docs"
    assert document.path == package_root / "_dev" / "build" / "docs" / "README.md"

# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

def test_transaction_without_commit_restores(package_root):
    (package_root / README_PATH).write_text("original")
    document = ManagedDocument(package_root)

    with document.transaction():
        document.write("draft")

    assert document.read() == "original"

def test_transaction_commit_keeps_changes(package_root):
    document = ManagedDocument(package_root)

    with document.transaction() as txn:
        document.write("final")
        txn.commit()

    assert document.read() == "final"

def test_transaction_restores_on_exception(package_root):
    document = ManagedDocument(package_root)

    with pytest.raises(KeyError):
        with document.transaction():
            document.write("draft")
            raise KeyError("boom")

    assert not document.path.exists()

# ---------------------------------------------------------------------------
# Atomic write
# ---------------------------------------------------------------------------

def test_atomic_write_creates_parents_and_leaves_no_temp_files(tmp_path):
    target = tmp_path / "a" / "b" / "README.md"
    write_text_atomic(target, "héllo\n")

    assert target.read_text(encoding="utf-8") == "héllo\n"
    assert os.listdir(target.parent) == ["README.md"]
    assert oct(target.stat().st_mode & 0o777) == oct(0o644)
