"""Typer application and CLI entry point for oauthcli.

``oauthcli [OPTIONS] PROVIDER`` authenticates against one provider and
saves the resulting credential to the token store:

1. Load the env file (``--env-file``, default ``.env``) and resolve the
   :class:`~oauthcli.models.RuntimeConfig`.
2. Look up the provider factory; resolve client credentials through
   :mod:`oauthcli.discovery` when the provider needs them.
3. Dispatch to the flow for the config's variant via
   :class:`~oauthcli.flows.manager.FlowManager`.
4. Save the :class:`~oauthcli.models.TokenRecord` with
   :class:`~oauthcli.store.TokenStore`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, invokes the Typer app, and
maps exceptions to exit codes. Unhandled exceptions are written to a crash
log under the data directory.

See Also:
    :mod:`oauthcli.config`: Env file and runtime configuration.
    :mod:`oauthcli.output`: Output manager initialised in :func:`login`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from oauthcli import __version__
from oauthcli.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="oauthcli",
    help="Authenticate against API providers and save the credentials locally.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"oauthcli {__version__}")
        raise typer.Exit()


def _print_usage() -> None:
    from oauthcli.output import print_data
    from oauthcli.providers import list_provider_names

    print_data("Usage: oauthcli [OPTIONS] PROVIDER")
    print_data(f"\nAvailable providers: {', '.join(list_provider_names())}")


@app.command()
def login(
    provider: Optional[str] = typer.Argument(
        None, help="Provider to authenticate with.", show_default=False
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    env_file: Path = typer.Option(
        Path(".env"), "--env-file", help="Env file to load before resolving credentials."
    ),
    headless: bool = typer.Option(
        False, "--headless", help="Run the capture browser without a window."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Authenticate with PROVIDER and save its credentials.

    Initialises the global :class:`~oauthcli.output.OutputManager` and
    logging from CLI flags before anything else runs.
    """
    from oauthcli.config import load_env_file, resolve_runtime_config
    from oauthcli.discovery import resolve_credentials
    from oauthcli.flows import create_default_manager
    from oauthcli.output import (
        OutputManager,
        configure_logging,
        error,
        info,
        print_data,
        set_output,
        success,
    )
    from oauthcli.providers import get_provider_factory, list_provider_names
    from oauthcli.store import TokenStore

    output = OutputManager(no_color=no_color, quiet=quiet)
    set_output(output)
    configure_logging(verbose, no_color=output.no_color)

    if not provider:
        _print_usage()
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    factory = get_provider_factory(provider)
    if factory is None:
        error(f"Unknown provider: {provider}")
        error(f"Available: {', '.join(list_provider_names())}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    load_env_file(env_file)
    runtime = resolve_runtime_config(headless=True if headless else None)
    provider_id = provider.lower()

    credentials = None
    if factory.requires_credentials:
        credentials = resolve_credentials(
            provider_id, runtime.environ, fetch_timeout=runtime.discovery_timeout
        )
    config = factory.build(credentials)

    info(f"Authenticating with {config.display_name}...")
    record = create_default_manager(runtime).authenticate(provider_id, config)

    store = TokenStore(runtime.tokens_path)
    store.save(record)

    if record.kind == "api_key":
        success(f"API key saved for {provider_id}.")
    else:
        success(f"Tokens saved for {provider_id}.")
    print_data(str(store.path))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from oauthcli.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``oauthcli`` console script.

    :class:`~oauthcli.exceptions.OauthcliError` instances cause a clean
    exit with the error's ``exit_code``; Ctrl-C exits 130. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from oauthcli.exceptions import OauthcliError
        from oauthcli.output import error

        if isinstance(exc, OauthcliError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            logger.debug("Unhandled exception", exc_info=True)
            log_path = _write_crash_log(exc)
            error(f"Unexpected error: {exc}")
            error(f"Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
