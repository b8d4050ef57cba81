"""plexauth -- sign in to plex.tv with the PIN (device) flow.

The flow has three steps::

    with PlexClient() as client:
        claim = client.create_claim("My App", client_id)
        url = build_auth_url("My App", client_id, claim.code)
        # show url to the user
        token = Poller(client).poll(claim, client_id)

:class:`~plexauth.flow.PinLogin` wraps those steps, and the ``plexauth``
console script drives them interactively.

Modules:
    client: blocking and async transports for the plex.tv v2 API.
    auth_url: authorization URL construction.
    poller: the bounded PIN poll loop.
    flow: end-to-end login orchestration.
    config: settings resolution and persistence.
    output: stdout/stderr formatting with Rich support.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"
