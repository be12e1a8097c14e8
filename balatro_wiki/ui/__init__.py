"""User interaction helpers."""

from .progress import ProgressActivity
from .render import REPOSITORY_LABEL, record_lines, repository_line

__all__ = ["ProgressActivity", "REPOSITORY_LABEL", "record_lines", "repository_line"]
