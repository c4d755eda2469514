"""Hardenforge CLI: Typer-based command-line interface.

Provides the ``hardenforge`` command with two groups:

    digest    show | compare | sync | reconcile | status
    hardened  prepare | build | verify | promote | clean | all | test

All output uses Rich for formatted terminal display.
"""
