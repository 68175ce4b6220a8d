"""Connectivity validation for the multi-store migrator."""

from multistore_migrator.validation.connectivity import ConnectionValidator, ConnectivityCheck

__all__ = [
    "ConnectionValidator",
    "ConnectivityCheck",
]
