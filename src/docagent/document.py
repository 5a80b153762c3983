# document.py
# The single document the agent is trusted to produce.
#
# The content present when the task starts is captured once and never
# changes afterwards. Every exit path that does not explicitly keep the
# agent's changes puts that content back, or removes the file if there was
# none to begin with.

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

README_PATH = Path("_dev", "build", "docs", "README.md")

_ABSENT = object()


def write_text_atomic(path: Path, content: str) -> None:
    """Full-content overwrite via a sibling temp file and rename. Creates parents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class Transaction:
    """Handle yielded by ManagedDocument.transaction(); commit() keeps changes."""

    def __init__(self) -> None:
        self.committed = False

    def commit(self) -> None:
        self.committed = True


class ManagedDocument:
    """
    Backup, read, write and restore for the managed document.

    Example:
        document = ManagedDocument(package_root)
        with document.transaction() as txn:
            ...  # tools overwrite the document
            txn.commit()  # omit to roll back
    """

    def __init__(self, root: Path, relative_path: Path = README_PATH) -> None:
        self._root = Path(root)
        self._relative_path = Path(relative_path)
        self._backup: object = _ABSENT
        self._backed_up = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._root / self._relative_path

    @property
    def relative_path(self) -> Path:
        return self._relative_path

    @property
    def allowed_dir(self) -> Path:
        """The only directory tools may write under."""
        return self._relative_path.parent

    @property
    def original(self) -> str | None:
        """Content captured by backup(), or None when no document existed."""
        if self._backup is _ABSENT:
            return None
        return self._backup  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def backup(self) -> str | None:
        if self._backed_up:
            raise RuntimeError("The managed document was already backed up for this task.")
        self._backed_up = True

        content = self.read()
        if content is None:
            logger.info("No existing %s found - will create a new one", self._relative_path)
        else:
            self._backup = content
            logger.info("Backed up original %s (%d characters)", self._relative_path, len(content))
        return content

    def read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, content: str) -> None:
        write_text_atomic(self.path, content)

    def has_changed(self) -> bool:
        current = self.read()
        if current is None:
            return False
        if self._backup is _ABSENT:
            return current != ""
        return current != self._backup

    def restore(self) -> None:
        """Put the backed-up state back. Safe to call repeatedly."""
        if self._backup is not _ABSENT:
            if self.read() != self._backup:
                self.write(self._backup)  # type: ignore[arg-type]
                logger.info("Restored original %s", self._relative_path)
            return

        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        logger.info("Removed created %s - restored to original state (no file)", self._relative_path)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Back up on entry; restore on any exit that did not commit."""
        self.backup()
        txn = Transaction()
        try:
            yield txn
        finally:
            if not txn.committed:
                self.restore()
