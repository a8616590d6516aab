"""Licensing protocol toolkit: command grammar, message framing, TLS channels and errors."""

__version__ = "0.1.0"

__all__ = ["errors", "protocol", "secure", "messaging"]