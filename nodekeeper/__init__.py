"""Maintenance toolkit for blockchain nodes run as systemd services."""

__version__ = "1.4.0"