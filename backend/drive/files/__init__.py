from .routes import files_bp

__all__ = ["files_bp"]
