from .routes import blobs_bp

__all__ = ["blobs_bp"]
