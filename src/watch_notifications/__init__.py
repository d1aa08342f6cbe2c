"""Watch notifications - template rendering and send-result recording."""

__version__ = "0.1.0"
