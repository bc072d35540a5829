"""Subcommands registered on the ``branchwise`` click group."""
