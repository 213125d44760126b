"""Ephemeral Solaris zone provisioning for test runs."""

__version__ = "0.1.0"
