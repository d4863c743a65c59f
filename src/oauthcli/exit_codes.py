"""Numeric process exit codes.

Every failure the command reports exits with :data:`EXIT_GENERIC_FAILURE`
so wrapper scripts only need to check for a non-zero status. Interrupts
keep the shell convention of ``128 + SIGINT``.

Example::

    $ oauthcli nosuchprovider
    $ echo $?
    1
"""

EXIT_SUCCESS = 0
"""Credentials were captured and saved."""

EXIT_GENERIC_FAILURE = 1
"""Missing arguments, unknown provider, or any failed authentication step."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
