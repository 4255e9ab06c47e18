"""Report generation - plan artifacts on disk."""

from .artifact import generate_artifacts

__all__ = ["generate_artifacts"]
