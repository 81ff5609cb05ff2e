"""Urban AI building-energy analysis backend."""

__version__ = '0.1.0'
