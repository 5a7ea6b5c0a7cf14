"""Caption animated GIFs with text taken from the request path, and serve them over WSGI."""

__version__ = "0.1.0"
__all__ = ["__version__"]