"""Subcommand entry points dispatched by :mod:`study_tracker.cli`."""
