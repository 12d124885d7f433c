"""Abstract base class for runners.

A runner owns the workspace of one submission and at most one child
process at a time.  Its life cycle is

    unprepared --prepare()--> prepared --run()--> running --> exited | killed

and run() may be called again once the previous process is gone, which is
how the harness runs one process per test case.
"""
import logging
import os
import signal
import subprocess
import threading
import time

from . import rutil
from .errors import CompileError, ExecutionError

log = logging.getLogger(__name__)


class ExitCode(object):
    """Write-once cell for the exit status of a process.

    The first call to set() stores the value; later calls are ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: int | None = None
        self._is_set = False

    def set(self, value: int) -> bool:
        with self._lock:
            if self._is_set:
                return False
            self._value = value
            self._is_set = True
            return True

    def is_set(self) -> bool:
        return self._is_set

    @property
    def value(self) -> int | None:
        return self._value


class Runner(object):
    """Abstract base class for runners.

    Subclasses provide get_runcmd() and, for compiled languages,
    get_compilecmd() and is_prepared().
    """

    def __init__(self, path: str, language, mainfile: str, compile_timeout: float | None = None) -> None:
        """
        Args:
            path (str): workspace directory of the submission.
            language (bestest.languages.Language): language of the submission.
            mainfile (str): path of the entry point file.
            compile_timeout (float): limit in seconds for prepare(), None for no limit.
        """
        self.path = path
        self.language = language
        self.mainfile = mainfile
        self.compile_timeout = compile_timeout
        self.deps: list[str] = []
        self.stderr = ''
        self._prepared = False
        self._compile_lock = threading.Lock()
        self._process: subprocess.Popen | None = None
        self._start: float | None = None
        self._stdout: str | None = None
        self._pending_input: str | None = ''
        self._exit_code = ExitCode()

    def __enter__(self) -> 'Runner':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __str__(self) -> str:
        return '%s (%s)' % (os.path.basename(self.path), self.language.name)

    def get_compilecmd(self) -> list[str] | None:
        """Compile command, or None if nothing needs compiling."""
        return None

    def get_runcmd(self) -> list[str]:
        raise NotImplementedError

    def is_prepared(self) -> bool:
        """Whether the compiled artifact is in place."""
        return self._prepared or self.get_compilecmd() is None

    def add_dep(self, path: str) -> None:
        """Copy a dependency (file or directory contents) into the workspace.
        Must be called before compilation to have any effect on it."""
        rutil.add_files(str(path), self.path)
        self.deps.append(str(path))

    def add_deps(self, paths) -> None:
        for path in paths:
            self.add_dep(path)

    def prepare(self) -> None:
        """Compile the program in place.

        Raises:
            CompileError: if the compiler is missing, times out, or exits
                with non-zero status.
        """
        with self._compile_lock:
            command = self.get_compilecmd()
            if command is None:
                self._prepared = True
                return

            log.debug('compile command: %s', command)
            try:
                result = subprocess.run(command, cwd=self.path, capture_output=True, text=True,
                                        errors='replace', timeout=self.compile_timeout)
            except FileNotFoundError:
                raise CompileError(None, '%s does not seem to be installed, expected to find compiler %s'
                                   % (self.language.name, command[0]))
            except subprocess.TimeoutExpired:
                raise CompileError(None, 'Compilation timed out after %.1f seconds.' % self.compile_timeout)

            if result.returncode != 0:
                raise CompileError(result.returncode, result.stderr or result.stdout)
            self._prepared = True

    def run(self) -> None:
        """Start the program with piped stdin, stdout and stderr.

        Compiles first if no compiled artifact is present.  Any previous
        process of this runner is killed and reaped.

        Raises:
            CompileError: if the implicit compilation fails.
            ExecutionError: if the process cannot be started.
        """
        self.close()
        if not self.is_prepared():
            self.prepare()

        command = self.get_runcmd()
        log.debug('run command: %s', command)
        self._exit_code = ExitCode()
        self._stdout = None
        self._pending_input = ''
        self.stderr = ''
        try:
            self._process = subprocess.Popen(command, cwd=self.path,
                                             stdin=subprocess.PIPE,
                                             stdout=subprocess.PIPE,
                                             stderr=subprocess.PIPE,
                                             text=True, encoding='utf-8', errors='replace',
                                             start_new_session=True)
        except OSError as exc:
            self._process = None
            raise ExecutionError('Failed to start %s: %s' % (command[0], exc))
        self._start = time.monotonic()

    def stdin(self, text: str) -> None:
        """Queue text for the program's input.

        The input is delivered by wait(), together with collecting the
        output and under the same timeout, so a program that never reads
        cannot block the caller.  A program that exits (or closes its
        input) without reading everything is not an error.

        Raises:
            ExecutionError: if no process is running or its input has
                already been closed by wait().
        """
        process = self._require_process()
        if process.stdin is None or process.stdin.closed or self._pending_input is None:
            raise ExecutionError('Input of %s is already closed' % self)
        self._pending_input += text

    def wait(self, timeout: float | None = None) -> int:
        """Wait for the program to exit, feeding it the queued input and
        collecting its output meanwhile.

        Input is closed once written.  If timeout seconds pass before the
        program exits, subprocess.TimeoutExpired is raised and the program
        keeps running; wait() may then be called again.

        Returns:
            int, exit status (negative signal number if killed).
        """
        process = self._require_process()
        if self._stdout is None:
            # communicate() only accepts input on its first call; it resumes the write after a timeout
            pending, self._pending_input = self._pending_input, None
            stdout, stderr = process.communicate(input=pending or None, timeout=timeout)
            self._stdout = stdout or ''
            self.stderr = stderr or ''
        else:
            process.wait(timeout=timeout)
        self._exit_code.set(process.returncode)
        return process.returncode

    def read_all(self) -> str:
        """Everything the program wrote to stdout.  Blocks until the
        program has exited."""
        self._require_process()
        if self._stdout is None:
            self.wait()
        if self._stdout is None:
            raise ExecutionError('No output collected from %s' % self)
        return self._stdout

    def running(self) -> bool:
        """Poll (without blocking) whether the process is alive."""
        if self._process is None:
            return False
        status = self._process.poll()
        if status is None:
            return True
        self._exit_code.set(status)
        return False

    @property
    def exit_code(self) -> int | None:
        return self._exit_code.value

    def runtime(self) -> float:
        """Wall time in seconds since the last run()."""
        if self._start is None:
            raise ExecutionError('%s has not been started yet' % self)
        return time.monotonic() - self._start

    def signal(self, sig: int) -> None:
        """Deliver sig to the process (and anything it spawned)."""
        if self._process is None:
            log.error('tried to signal a process that does not exist!')
            raise ExecutionError('tried to signal a process that does not exist')
        try:
            os.killpg(self._process.pid, sig)
        except OSError as exc:
            raise ExecutionError('failed to signal PID %d: %s' % (self._process.pid, exc))

    def close(self) -> None:
        """Kill the current process, if still alive, and reap it."""
        process = self._process
        if process is None:
            return
        if process.poll() is None:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        if self._stdout is None:
            stdout, stderr = process.communicate()
            self._stdout = stdout or ''
            self.stderr = stderr or ''
        self._exit_code.set(process.returncode)

    def _require_process(self) -> subprocess.Popen:
        if self._process is None:
            raise ExecutionError('Process of %s has not started yet!' % self)
        return self._process
