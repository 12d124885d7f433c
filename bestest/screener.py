"""
Static screening of submission source code for disallowed operations.

This is a lexical scan for literal tokens, grouped into capability
categories per language.  It is advisory: a submission with a finding is
not judged, but nothing here contains a submission that gets through.
"""
import bisect
import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .run import rutil

log = logging.getLogger(__name__)


class Capability(enum.Enum):
    """Categories of potentially dangerous operations, in resolution order."""
    FileIO = 'FileIO'
    SysAccess = 'SysAccess'
    Runtime = 'Runtime'
    Threading = 'Threading'
    Reflection = 'Reflection'
    ProcessExec = 'ProcessExec'
    SystemCall = 'SystemCall'
    Network = 'Network'
    Assembly = 'Assembly'
    Signal = 'Signal'
    Process = 'Process'
    Unsafe = 'Unsafe'
    FFI = 'FFI'
    Command = 'Command'
    OsAccess = 'OsAccess'
    Eval = 'Eval'
    Exec = 'Exec'
    Import = 'Import'
    Ctypes = 'Ctypes'
    Pickle = 'Pickle'
    Unknown = 'Unknown'
    All = 'All'


_C_TOKENS = {
    Capability.SystemCall: ['fork', 'exec', 'system', 'popen', 'vfork', 'execl', 'execlp', 'execle',
                            'execv', 'execvp', 'execve'],
    Capability.FileIO: ['fopen', 'fread', 'fwrite', 'fclose'],
    Capability.Network: ['socket', 'bind', 'connect', 'recv', 'send'],
    Capability.Assembly: ['asm', '__asm__'],
    Capability.Signal: ['signal', 'raise'],
    Capability.Process: ['wait', 'waitpid'],
}

# Disallowed tokens per language id and capability.  The All and Unknown
# sentinels have no tokens of their own.
TOKENS: dict[str, dict[Capability, list[str]]] = {
    'c': _C_TOKENS,
    'cpp': _C_TOKENS,
    'rust': {
        Capability.Unsafe: ['unsafe', 'raw pointer'],
        Capability.FileIO: ['std::fs::File', 'std::io'],
        Capability.Network: ['std::net', 'TcpStream', 'UdpSocket'],
        Capability.Threading: ['std::thread'],
        Capability.FFI: ['extern', 'libc', 'std::os::unix::process::Command'],
        Capability.Command: ['std::process::Command'],
        Capability.Reflection: ['reflect'],
    },
    'python': {
        Capability.OsAccess: ['os.system', 'os.popen'],
        Capability.Eval: ['eval('],
        Capability.Exec: ['exec('],
        Capability.FileIO: ['open('],
        Capability.Threading: ['threading.Thread'],
        Capability.Network: ['socket', 'requests.get', 'urllib', 'subprocess'],
        Capability.Import: ['__import__'],
        Capability.Ctypes: ['ctypes'],
        Capability.Pickle: ['pickle.loads', 'pickle.dumps'],
    },
    'java': {
        Capability.FileIO: ['java.io.FileInputStream', 'java.io.FileOutputStream',
                            'java.io.FileReader', 'java.io.FileWriter'],
        Capability.SysAccess: ['System.exit', 'System.setSecurityManager', 'SecurityManager',
                               'checkPermission'],
        Capability.Runtime: ['Runtime', 'Runtime.exec', 'Runtime.getRuntime', 'runtimeexec'],
        Capability.Threading: ['Thread', 'Thread.start'],
        Capability.Reflection: ['reflect', 'Class.forName', 'Class.getDeclaredMethod',
                                'Class.getMethod', 'setAccessible', 'invoke'],
        Capability.ProcessExec: ['ProcessBuilder', 'Runtime.exec'],
    },
}


class ScreenError(Exception):
    pass


@dataclass(frozen=True)
class SecurityFinding:
    """One occurrence of a disallowed token.  line and column are 0-based."""
    path: Path
    line: int
    column: int
    category: Capability
    snippet: str


def resolve_allowed(allow) -> set[Capability]:
    """Map configured allow-strings to capabilities.

    Each string resolves to the first capability whose name it contains.
    Strings that contain none are dropped with a warning.
    """
    allowed = set()
    for entry in allow:
        match = next((cap for cap in Capability if cap.value in entry), None)
        if match is None:
            log.warning('Ignoring unknown capability "%s" in allow list', entry)
            continue
        allowed.add(match)
    return allowed


def prohibited_categories(allowed: set[Capability]) -> set[Capability]:
    """All capabilities not allowed; empty if everything is allowed."""
    if Capability.All in allowed:
        return set()
    return set(Capability) - allowed


def locate(offset: int, line_starts: list[int]) -> tuple[int, int]:
    """(line, column) of a character offset, given the offsets at which
    each line starts."""
    line = bisect.bisect_right(line_starts, offset) - 1
    return line, offset - line_starts[line]


def line_starts(text: str) -> list[int]:
    starts = [0]
    pos = text.find('\n')
    while pos != -1:
        starts.append(pos + 1)
        pos = text.find('\n', pos + 1)
    return starts


def scan_text(text: str, lang_id: str, prohibited: set[Capability], path: Path) -> list[SecurityFinding]:
    """Find the first occurrence of every prohibited token in text."""
    table = TOKENS.get(lang_id, {})
    starts = None
    findings = []
    for category in Capability:
        if category not in prohibited:
            continue
        for token in table.get(category, []):
            offset = text.find(token)
            if offset == -1:
                continue
            if starts is None:
                starts = line_starts(text)
            line, column = locate(offset, starts)
            end = text.find('\n', offset)
            snippet = text[starts[line]:end if end != -1 else len(text)].strip()
            findings.append(SecurityFinding(path, line, column, category, snippet))
    return findings


def screen(path, allow, languages) -> list[SecurityFinding]:
    """Screen one source file.

    Args:
        path: file to scan.
        allow (list of str): configured allow list.
        languages (bestest.languages.Languages): used to determine the
            language of the file.

    Returns:
        list of SecurityFinding, empty if the file is clean, its
        language unknown, or its content not text.

    Raises:
        ScreenError: if the file cannot be read.
    """
    path = Path(path)
    prohibited = prohibited_categories(resolve_allowed(allow))
    if not prohibited:
        return []
    lang = languages.detect_language([str(path)])
    if lang is None or lang.lang_id not in TOKENS:
        log.debug('Not screening %s: no rules for its language', path)
        return []
    try:
        text = path.read_bytes().decode('utf-8')
    except UnicodeDecodeError:
        log.warning('Not screening %s: not UTF-8 text', path)
        return []
    except OSError as err:
        raise ScreenError('Failed to read %s: %s' % (path, err))
    log.debug('checking %s', path)
    return scan_text(text, lang.lang_id, prohibited, path)


def screen_workspaces(workspaces, allow, languages, pool) -> dict[Path, list[SecurityFinding]]:
    """Screen all files of the given workspaces.

    Returns:
        dict mapping each file with at least one finding to its findings.
    """
    files = []
    for workspace in workspaces:
        files.extend(Path(f) for f in rutil.list_files_recursive(str(workspace)))

    def check(path: Path) -> list[SecurityFinding]:
        try:
            return screen(path, allow, languages)
        except ScreenError as err:
            log.error('%s', err)
            return []

    results = pool.map(check, files)
    return {path: findings for path, findings in zip(files, results) if findings}


def flagged_workspaces(findings, temp_root) -> set[Path]:
    """Workspace directories (direct children of temp_root) containing
    any of the flagged files."""
    temp_root = Path(temp_root)
    flagged = set()
    for path in findings:
        relative = Path(os.path.relpath(path, temp_root))
        flagged.add(temp_root / relative.parts[0])
    return flagged
