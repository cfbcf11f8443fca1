from .routes import clipboard_bp

__all__ = ["clipboard_bp"]
