"""tailserve — serve files on your tailnet."""

__version__ = "0.1.0"
