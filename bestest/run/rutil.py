"""File helpers for workspaces.
"""
import os
import shutil

from .errors import RunnerError


def add_files(src, dstdir):
    """Copy a dependency into a workspace.

    Args:
        src (str): a file, copied into dstdir, or a directory, whose
            entries (recursively) are merged into dstdir.
        dstdir (str): existing directory to copy into.

    Raises:
        RunnerError: if src does not exist or copying fails.
    """
    if not os.path.exists(src):
        raise RunnerError('Dependency not found: %s' % src)
    try:
        if os.path.isdir(src):
            shutil.copytree(src, dstdir, dirs_exist_ok=True)
        else:
            shutil.copy(src, dstdir)
    except OSError as exc:
        raise RunnerError('Failed to copy %s into %s: %s' % (src, dstdir, exc))


def list_files_recursive(root):
    """All files below root, as sorted paths starting with root."""
    return sorted(os.path.join(path, name)
                  for path, _, names in os.walk(root)
                  for name in names)
