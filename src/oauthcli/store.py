"""Token store -- one JSON file mapping provider id to token record.

The file (``tokens.json`` in the data directory by default, see
:func:`oauthcli.config.get_tokens_path`) is read in full, one entry is
replaced, and the whole mapping is written back, pretty-printed.

Saves hold an advisory ``fcntl`` lock on a sidecar ``.lock`` file for the
whole read-modify-write, and the write itself goes through
:func:`oauthcli.config._atomic_write` (temp file, fsync, ``os.replace``,
``0o600``), so concurrent invocations for different providers cannot lose
each other's updates and a crash never leaves a half-written file. On
platforms without ``fcntl`` only the atomic rename applies.

See Also:
    :class:`~oauthcli.models.TokenRecord` -- the stored shape.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from oauthcli.config import _atomic_write
from oauthcli.models import TokenRecord

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 15.0


class TokenStore:
    """Read/write the token file at *path*.

    Args:
        path: Location of the JSON file. Parent directories are created on
            first save.

    Example::

        store = TokenStore(tmp_path / "tokens.json")
        store.save(record)
        assert store.get(record.provider) == record
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """The filesystem path of the token file."""
        return self._path

    @property
    def lock_path(self) -> Path:
        """The sidecar file used for the advisory lock."""
        return self._path.with_name(self._path.name + ".lock")

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def _load_raw(self) -> dict[str, Any]:
        """Return the file's top-level object, or ``{}`` if missing or unreadable."""
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable token store %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring token store %s: top level is not an object", self._path)
            return {}
        return data

    def load(self) -> dict[str, TokenRecord]:
        """Load every valid record.

        Returns:
            A mapping of provider id to :class:`~oauthcli.models.TokenRecord`.
            Empty if the file does not exist or cannot be parsed. Entries
            that fail validation are skipped.
        """
        records: dict[str, TokenRecord] = {}
        for provider, value in self._load_raw().items():
            try:
                records[provider] = TokenRecord.model_validate(value)
            except ValidationError as exc:
                logger.warning("Skipping invalid token record for '%s': %s", provider, exc)
        return records

    def get(self, provider: str) -> Optional[TokenRecord]:
        """Return the stored record for *provider*, or ``None``."""
        return self.load().get(provider)

    # ------------------------------------------------------------------ #
    # Writing
    # ------------------------------------------------------------------ #

    def save(self, record: TokenRecord) -> None:
        """Replace the entry for ``record.provider`` and rewrite the file.

        Entries for other providers are carried over as they are on disk,
        including ones this version cannot validate.

        Raises:
            TimeoutError: If the store lock cannot be acquired.
            OSError: If the file cannot be written.
        """
        with self._locked():
            data = self._load_raw()
            data[record.provider] = record.model_dump(mode="json", exclude_none=True)
            _atomic_write(self._path, json.dumps(data, indent=2) + "\n")
        logger.debug("Saved token record for '%s' to %s", record.provider, self._path)

    @contextmanager
    def _locked(self, timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
        """Cross-process advisory lock around a read-modify-write."""
        lock_path = self.lock_path
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        with lock_path.open("a+") as lock_file:
            if fcntl is None:
                yield
                return

            deadline = time.monotonic() + max(1.0, timeout_seconds)
            while True:
                try:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise TimeoutError(f"Timed out waiting for token store lock {lock_path}")
                    time.sleep(0.05)

            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
