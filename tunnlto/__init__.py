"""TunnlTo tunnel configuration manager."""

__version__ = "1.0.1"
