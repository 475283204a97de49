"""E-stock Support Bot - AI technical support assistant backend."""

__version__ = "1.0.0"
