"""
External-file path resolution.

ExternalFile locations in a PLMXML export are relative to the directory the
.plmxml file was written to, and are frequently written with Windows
separators. They are resolved to absolute paths against the directory of the
loaded document.
"""

import os
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


def sanitized_path(path: str) -> str:
    """Replace back-slashes with forward slashes."""
    return path.replace("\\", "/")


def sanitize_file_name(file_name: str) -> str:
    """
    Replace characters that are invalid in file names with underscores.

    Used when proposing a target name for copying an external file.

    Examples:
        >>> sanitize_file_name('parts\\\\a:b.jt')
        'parts_a_b.jt'
    """
    for char in '\\/:*?"<>|':
        file_name = file_name.replace(char, "_")
    return file_name


def resolve_location(base_path: Optional[PathLike], location_ref: Optional[str]) -> Optional[str]:
    """
    Resolve an ExternalFile locationRef against the document directory.

    Args:
        base_path: Directory of the PLMXML document (None = leave relative)
        location_ref: Location as written in the document

    Returns:
        Resolved path with '/' separators, or None if there is no location

    Examples:
        >>> resolve_location("/export/", "parts/a.jt")
        '/export/parts/a.jt'
        >>> resolve_location("/export", "parts\\\\a.jt")
        '/export/parts/a.jt'
    """
    if not location_ref:
        return None

    location = sanitized_path(location_ref)

    # Absolute locations (POSIX or drive-letter) are not re-based
    if PurePosixPath(location).is_absolute() or PureWindowsPath(location).drive:
        return location

    if base_path is None:
        return location

    base = sanitized_path(os.fspath(base_path))
    if not base:
        return location
    return str(PurePosixPath(base) / location)
