from .diff_objects import diff_objects

__all__ = ["diff_objects"]
