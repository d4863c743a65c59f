"""oauthcli -- capture OAuth2 credentials for third-party API providers.

The command opens a real browser at a provider's authorization endpoint,
watches for the redirect that carries the authorization outcome, exchanges
or normalises what it captured, and writes a token record to a local JSON
store. Providers without a redirect step are handled with the OAuth2 device
flow, and providers that only issue API keys fall back to a paste prompt.

Typical usage::

    oauthcli openai       # authorization code + PKCE through a browser
    oauthcli copilot      # device code flow
    oauthcli anthropic    # paste an API key

Modules:
    app: Typer application and console entry point.
    models: Pydantic models (provider configs, token records, runtime config).
    config: XDG paths, env-file loading, runtime configuration.
    discovery: Layered client-credential discovery.
    providers: Provider registry and factories.
    pkce: PKCE verifier/challenge and state generation.
    capture: Redirect capture arbiter and browser session adapter.
    flows: Authorization-code, device-code, and API-key flows.
    store: Token store on disk.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr output with Rich support.
"""

__version__ = "0.1.0"
