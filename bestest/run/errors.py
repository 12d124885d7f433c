class RunnerError(Exception):
    """Base class for errors raised while handling a submission's program."""
    pass


class ResolutionError(RunnerError):
    """No runner could be picked for a workspace: unknown language, no
    entry point, or more than one candidate entry point."""
    pass


class CompileError(RunnerError):
    """Compilation failed.

    Attributes:
        code (int or None): exit status of the compiler, None if the
            compiler could not be run at all.
        stderr (str): captured compiler output.
    """

    def __init__(self, code: int | None, stderr: str) -> None:
        super().__init__(stderr)
        self.code = code
        self.stderr = stderr


class ExecutionError(RunnerError):
    """The program could not be started, fed or signalled."""
    pass
