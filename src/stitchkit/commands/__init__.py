"""Built-in CLI sub-commands for stitchkit.

* :mod:`~stitchkit.commands.config` -- create profiles and edit settings.
* :mod:`~stitchkit.commands.auth` -- log in and out, inspect the session.
* :mod:`~stitchkit.commands.functions` -- call backend functions.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app. Commands that
talk to the backend go through :func:`~stitchkit.commands.common.run_with_client`.
"""
