"""
Routing of raw submission files into per-submission workspaces.

Every file in the target directory is matched against the naming pattern.
The captured name (or id) selects the workspace <temp_root>/<key>; archives
are extracted into it and other files are copied in.
"""
import enum
import errno
import filecmp
import logging
import os
import stat
import shutil
import tarfile
import threading
import zipfile
from pathlib import Path

from . import pattern
from .judgeconfig import Config, OrderBy

log = logging.getLogger(__name__)

ARCHIVE_EXTENSIONS = {'zip', 'tar', 'tar.gz', 'tgz'}
CONFIG_EXTENSIONS = {'toml', 'json', 'yaml', 'yml'}
KNOWN_EXTENSIONS = ({'java', 'jar', 'c', 'h', 'cc', 'cpp', 'cxx', 'hpp', 'rs', 'py', 'txt'}
                    | ARCHIVE_EXTENSIONS | CONFIG_EXTENSIONS)

# One lock per workspace; checking for a collision and writing happen under it
_workspace_locks: dict[Path, threading.Lock] = {}
_workspace_locks_guard = threading.Lock()


class UnpackErrorKind(enum.Enum):
    FILE_FORMAT = 'FileFormat'
    EXECUTABLE = 'Executable'
    FILE_TYPE = 'FileType'
    ZIP_PROBLEM = 'ZipProblem'
    OS = 'Os'
    IGNORE = 'Ignore'
    UNKNOWN = 'Unknown'


class UnpackError(Exception):
    """A file could not be routed into a workspace.

    Attributes:
        kind (UnpackErrorKind): what went wrong.  IGNORE means the file
            was skipped on purpose and is not a failure.
        path (Path): the offending file.
        detail (str): human readable explanation.
        errno (int or None): OS error number for kind OS.
    """

    def __init__(self, kind: UnpackErrorKind, path: Path, detail: str = '', err: int | None = None) -> None:
        super().__init__(f'{kind.value}: {path}' + (f' ({detail})' if detail else ''))
        self.kind = kind
        self.path = path
        self.detail = detail
        self.errno = err

    @property
    def ignored(self) -> bool:
        return self.kind is UnpackErrorKind.IGNORE


def extension_of(name: str) -> str | None:
    """Extension of a file name, treating .tar.gz as one extension."""
    if name.lower().endswith('.tar.gz'):
        return 'tar.gz'
    ext = os.path.splitext(name)[1]
    return ext[1:] if ext else None


def unpack(path: Path, config: Config, temp_root: Path) -> Path:
    """Route one file into its workspace.

    Returns:
        Path of the workspace.

    Raises:
        UnpackError: if the file is skipped or cannot be routed.
        pattern.FormatError: if the naming pattern is invalid.
    """
    path = Path(path)
    if path.is_dir():
        log.warning('Unpacker received directory %s; leaving it untouched.', path)
        raise UnpackError(UnpackErrorKind.IGNORE, path, 'directory')
    if not path.is_file():
        raise UnpackError(UnpackErrorKind.IGNORE, path, 'not a regular file')

    file_ext = extension_of(path.name)
    if file_ext is not None and file_ext.lower() not in KNOWN_EXTENSIONS:
        log.warning('Skipping file with unsupported extension: %s', path)
        raise UnpackError(UnpackErrorKind.IGNORE, path, 'unsupported extension')

    match = pattern.compile_format(config.format).match(path.name)
    if match is None:
        log.debug('Skipping file %s because it did not match configured format %s', path, config.format)
        raise UnpackError(UnpackErrorKind.IGNORE, path, 'does not match format')

    key_group = 'name' if config.orderby is OrderBy.NAME else 'id'
    key = match.groupdict().get(key_group)
    if not key:
        log.error('format requires {%s} so that submissions can be told apart', key_group)
        raise UnpackError(UnpackErrorKind.FILE_FORMAT, path, f'no {{{key_group}}} captured')

    ext = match.groupdict().get('extension') or file_ext
    if ext is None:
        try:
            mode = path.stat().st_mode
        except OSError as err:
            raise UnpackError(UnpackErrorKind.UNKNOWN, path, str(err))
        if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
            log.error('Received an executable file %s! Direct execution is not supported.', path)
            raise UnpackError(UnpackErrorKind.EXECUTABLE, path, 'executable without extension')
        log.error('%s is neither executable nor of a known file type!', path)
        raise UnpackError(UnpackErrorKind.FILE_TYPE, path, 'no extension')
    ext = ext.lower()
    if ext in CONFIG_EXTENSIONS:
        raise UnpackError(UnpackErrorKind.IGNORE, path, 'configuration file')

    target = Path(temp_root) / key
    try:
        target.mkdir(exist_ok=True)
    except OSError as err:
        raise UnpackError(UnpackErrorKind.OS, path, str(err), err.errno)

    with _workspace_lock(target):
        if ext in ARCHIVE_EXTENSIONS:
            extract_archive(path, target)
        else:
            filename = match.groupdict().get('filename') or key
            copy_file(path, target / f'{filename}.{ext}')
    return target


def copy_file(src: Path, dest: Path) -> None:
    """Copy src to dest.  An existing identical dest is kept; an existing
    different one is an error, never overwritten."""
    try:
        with open(src, 'rb') as fin, open(dest, 'xb') as fout:
            shutil.copyfileobj(fin, fout)
    except FileExistsError:
        if dest.is_file() and filecmp.cmp(src, dest, shallow=False):
            log.debug('%s already present in workspace', dest)
            return
        raise UnpackError(UnpackErrorKind.OS, src, f'{dest} already exists with different content', errno.EEXIST)
    except OSError as err:
        raise UnpackError(UnpackErrorKind.OS, src, str(err), err.errno)


def extract_archive(path: Path, target: Path) -> None:
    """Extract a zip or tar archive into target, keeping its internal
    layout.  Members already present with identical content are skipped;
    conflicting members abort the extraction before anything is written."""
    try:
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                members = [info for info in archive.infolist() if not info.is_dir()]
                pending = [info for info in members
                           if _needs_write(target, info.filename, lambda info=info: archive.read(info), path)]
                for info in pending:
                    archive.extract(info, target)
                for info in archive.infolist():
                    if info.is_dir():
                        archive.extract(info, target)
        elif tarfile.is_tarfile(path):
            with tarfile.open(path) as archive:
                members = [m for m in archive.getmembers() if m.isfile()]
                pending = [m for m in members
                           if _needs_write(target, m.name, lambda m=m: archive.extractfile(m).read(), path)]
                archive.extractall(target, members=pending, filter='data')
        else:
            raise UnpackError(UnpackErrorKind.ZIP_PROBLEM, path, 'not a zip or tar archive')
    except (zipfile.BadZipFile, tarfile.TarError, EOFError) as err:
        raise UnpackError(UnpackErrorKind.ZIP_PROBLEM, path, str(err))
    except OSError as err:
        raise UnpackError(UnpackErrorKind.OS, path, str(err), err.errno)


def _workspace_lock(target: Path) -> threading.Lock:
    key = Path(os.path.realpath(target))
    with _workspace_locks_guard:
        return _workspace_locks.setdefault(key, threading.Lock())


def _needs_write(target: Path, name: str, read, archive: Path) -> bool:
    dest = target / name
    if not dest.exists():
        return True
    if dest.is_file() and dest.read_bytes() == read():
        return False
    raise UnpackError(UnpackErrorKind.OS, archive, f'{dest} already exists with different content', errno.EEXIST)


def unpack_all(root: Path, config: Config, temp_root: Path, pool) -> list[Path | UnpackError]:
    """Route every entry of root into workspaces under temp_root.

    Runs under the shared worker pool.  Each entry yields either its
    workspace path or the UnpackError describing why it was not routed;
    one bad file never stops the others.
    """
    root = Path(root)
    pattern.compile_format(config.format)
    if str(config.orderby) not in pattern.placeholders(config.format):
        log.warning('Submissions are grouped by {%s}, which format %s does not contain',
                    config.orderby, config.format)
    if root.is_file():
        log.warning('Expected a directory to unpack, received a file instead (%s). '
                    'Treating it as a single submission.', root)
        return [_unpack_one(root, config, temp_root)]
    try:
        entries = sorted(root.iterdir())
    except OSError as err:
        log.error('Failed to read directory %s: %s', root, err)
        return [UnpackError(UnpackErrorKind.OS, root, str(err), err.errno)]

    log.debug('unpacking %d entries of %s', len(entries), root)
    results = pool.map(lambda entry: _unpack_one(entry, config, temp_root), entries)
    for result in results:
        if isinstance(result, UnpackError):
            if not result.ignored:
                log.error('Failed to unpack: %s', result)
        else:
            log.debug('Finished unpacking %s', result.name)
    log.debug('All unpacks complete.')
    return results


def _unpack_one(path: Path, config: Config, temp_root: Path) -> Path | UnpackError:
    try:
        return unpack(path, config, temp_root)
    except UnpackError as err:
        return err
