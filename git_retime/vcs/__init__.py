"""Version-control backends."""

from .git_backend import GitBackend

__all__ = ['GitBackend']
