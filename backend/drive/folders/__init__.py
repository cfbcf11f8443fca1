from .routes import folders_bp

__all__ = ["folders_bp"]
