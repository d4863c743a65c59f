"""Configuration: XDG paths, atomic writes, env files, and runtime settings.

This module handles everything the command reads from its surroundings:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.oauthcli/`` on macOS and Windows. See :func:`get_data_dir`.
* **Token file location** -- :func:`get_tokens_path`, overridable with
  ``OAUTHCLI_TOKENS_FILE``.
* **Env files** -- :func:`load_env_file` loads ``KEY=value`` lines with
  python-dotenv without overriding variables that are already set.
* **Runtime configuration** -- :func:`resolve_runtime_config` snapshots the
  environment and tunables into a :class:`~oauthcli.models.RuntimeConfig`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from oauthcli.exceptions import ConfigError
from oauthcli.models import RuntimeConfig

logger = logging.getLogger(__name__)

_APP_NAME = "oauthcli"
_TOKENS_FILENAME = "tokens.json"

_TRUE_VALUES = ("1", "true", "yes", "on")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def get_data_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the data directory (tokens, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/oauthcli/`` (default ``~/.local/share/oauthcli/``).
    On macOS/Windows: ``~/.oauthcli/``.

    Args:
        environ: Environment mapping to read ``XDG_DATA_HOME`` from.
            Defaults to ``os.environ``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    env = os.environ if environ is None else environ
    if _is_xdg_platform():
        xdg = env.get("XDG_DATA_HOME", "")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_tokens_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the token store path.

    ``OAUTHCLI_TOKENS_FILE`` wins when set; otherwise ``tokens.json`` in
    :func:`get_data_dir`.
    """
    env = os.environ if environ is None else environ
    override = env.get("OAUTHCLI_TOKENS_FILE", "")
    if override:
        return Path(override).expanduser()
    return get_data_dir(env) / _TOKENS_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: int = 0o600) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Permissions are
    set on the temp file before any content is written. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in the except branch
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Env file ---


def load_env_file(path: Path | str = ".env") -> bool:
    """Load ``KEY=value`` lines from *path* into ``os.environ``.

    Lines starting with ``#`` are comments. Variables that are already set
    in the environment keep their values.

    Args:
        path: The env file to read. A missing file is not an error.

    Returns:
        ``True`` if the file existed and was loaded.
    """
    env_path = Path(path)
    if not env_path.is_file():
        logger.debug("No env file at %s", env_path)
        return False
    logger.debug("Loading env file %s", env_path)
    load_dotenv(env_path, override=False)
    return True


# --- Runtime configuration ---


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number of seconds, got '{raw}'") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got '{raw}'")
    return value


def resolve_runtime_config(
    environ: Optional[Mapping[str, str]] = None,
    *,
    headless: Optional[bool] = None,
) -> RuntimeConfig:
    """Resolve the runtime configuration for one invocation.

    Precedence (high to low):
        1. Explicit arguments (``headless``, from CLI flags)
        2. Environment variables (``OAUTHCLI_*``)
        3. Defaults

    Args:
        environ: Environment mapping. Defaults to a copy of ``os.environ``
            taken after any env file has been loaded.
        headless: CLI override for running the capture browser headless.

    Returns:
        A frozen :class:`~oauthcli.models.RuntimeConfig`.

    Raises:
        ConfigError: If a numeric ``OAUTHCLI_*`` variable is malformed.
    """
    env = dict(os.environ if environ is None else environ)

    if headless is None:
        headless = env.get("OAUTHCLI_HEADLESS", "").strip().lower() in _TRUE_VALUES

    return RuntimeConfig(
        environ=env,
        tokens_path=get_tokens_path(env),
        capture_timeout=_env_float(env, "OAUTHCLI_CAPTURE_TIMEOUT", 300.0),
        device_flow_max_wait=_env_float(env, "OAUTHCLI_DEVICE_MAX_WAIT", 900.0),
        headless=headless,
    )
