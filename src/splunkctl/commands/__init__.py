"""Built-in CLI sub-commands for splunkctl.

* :mod:`~splunkctl.commands.search` -- ``login`` and ``search``.
* :mod:`~splunkctl.commands.jobs` -- inspect and manage search jobs.
* :mod:`~splunkctl.commands.indexes` -- list indexes.
* :mod:`~splunkctl.commands.list_all` -- multi-profile resource overview.
* :mod:`~splunkctl.commands.config` -- manage connection profiles.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app.
"""
