"""
Subcount file store.

The counter file holds nothing but the decimal value of the counter (no
newline). Every write replaces the whole file through a temp file and an
atomic rename. Write failures are logged and swallowed: the in-memory
counter stays authoritative and the next change writes again.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from core.subcount.classifier import parse_count
from shared.logging.logger import get_logger

log = get_logger("shared.counter_store")


class CounterStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Atomic writer
    # ------------------------------------------------------------------

    def _target_mode(self) -> int:
        try:
            return self.path.stat().st_mode & 0o777
        except FileNotFoundError:
            # same as a plain open(): 0666 minus the process umask
            umask = os.umask(0)
            os.umask(umask)
            return 0o666 & ~umask

    def _write_atomic(self, text: str) -> None:
        parent = self.path.parent
        parent.mkdir(parents=True, exist_ok=True)
        mode = self._target_mode()

        # NamedTemporaryFile creates 0600; the counter keeps its own mode
        tmp = tempfile.NamedTemporaryFile(
            "w", dir=parent, delete=False, encoding="utf-8", prefix=".subcount-"
        )
        temp_path = Path(tmp.name)
        try:
            with tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(temp_path, mode)
            temp_path.replace(self.path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def persist(self, value: int) -> bool:
        try:
            self._write_atomic(str(value))
        except Exception as e:
            log.warning(f"Failed to write subcount to {self.path}: {e}")
            return False

        log.info(f"Wrote subcount {value} to {self.path}")
        return True

    def load(self) -> int:
        """
        Read the counter at startup.

        Missing file: create it with "0" and start at 0.
        Unreadable or unparsable file: start at 0 and leave the file as-is
        until the next successful write.
        """
        if not self.path.exists():
            try:
                self._write_atomic("0")
                log.info(
                    f"Previous subcount not found at {self.path}; "
                    "starting at 0, saved new file"
                )
            except Exception as e:
                log.warning(
                    f"Previous subcount not found and {self.path} "
                    f"could not be created ({e}); starting at 0"
                )
            return 0

        try:
            contents = self.path.read_text(encoding="utf-8")
        except Exception as e:
            log.warning(f"Failed to read {self.path} ({e}); ignoring, starting at 0")
            return 0

        subs = parse_count(contents.strip())
        if subs is None:
            log.warning(
                f"Failed to parse previous subcount {contents!r}; "
                "ignoring, starting at 0"
            )
            return 0

        log.info(f"Loaded previous subcount: {subs}")
        return subs
