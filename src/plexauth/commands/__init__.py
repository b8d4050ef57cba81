"""Built-in CLI sub-commands for plexauth.

* :mod:`~plexauth.commands.login` -- ``login`` (run the PIN flow) and
  ``validate`` (check a token).
* :mod:`~plexauth.commands.config` -- view and modify stored settings.

Single commands are plain callback functions registered on the root app;
multi-command groups export a :class:`typer.Typer` sub-application.
"""
