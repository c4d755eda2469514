"""Core engine: baseline reconciliation, build-file pinning, stage control."""
