from __future__ import annotations


class PartsnapError(Exception):
    """Base class for errors raised by partsnap."""


class ConfigurationError(PartsnapError):
    """Fatal startup problem: the placement engine refuses to activate."""
