"""File path resolution utilities for CLI."""

from pathlib import Path
from typing import Optional

DEFAULT_DOCUMENTS = ("converge.yaml", "converge.yml")


def resolve_file_path(file_path: Optional[str]) -> Path:
    """
    Resolve the desired-state document path.

    Without an explicit path, looks for converge.yaml (or .yml) in the
    current directory only.

    Raises:
        FileNotFoundError: If no document can be found
    """
    if not file_path:
        for name in DEFAULT_DOCUMENTS:
            candidate = Path.cwd() / name
            if candidate.is_file():
                return candidate.resolve()
        raise FileNotFoundError(
            f"No desired-state document given and none of {', '.join(DEFAULT_DOCUMENTS)} "
            "exists in the current directory."
        )

    path = Path(file_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    path = path.resolve()

    if not path.exists():
        raise FileNotFoundError(
            f"File not found: {file_path}. Please check the file path and try again."
        )

    if not path.is_file():
        raise FileNotFoundError(
            f"Path is not a file: {file_path}. Please provide a valid file path."
        )

    return path
