"""Adapters to external tooling: docker, buildx, trivy and kubectl.

Everything here is a capability consumed by the core through the protocols
in :mod:`hardenforge.bridge.capabilities`.
"""
