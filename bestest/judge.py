"""
The judge harness: runs every submission against the test cases and
scores it by comparing output.
"""
import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from .diff import Diff, diff_lines
from .judgeconfig import Config, TestCase
from .run import CompileError, ExecutionError, ResolutionError, RunnerError, get_runner

log = logging.getLogger(__name__)

# Seconds between liveness polls while a killed process goes away.
KILL_POLL_INTERVAL = 0.01

TIMED_OUT = 'Timed out.'


@dataclass(frozen=True)
class Correct:
    output: str

    verdict = 'AC'


@dataclass(frozen=True)
class Wrong:
    output: str
    diff: Diff

    verdict = 'WA'


@dataclass(frozen=True)
class Error:
    code: int
    reason: str

    @property
    def verdict(self) -> str:
        return 'TLE' if self.reason == TIMED_OUT else 'RE'


CaseOutcome = Correct | Wrong | Error


@dataclass
class SubmissionResult:
    workspace: Path
    outcomes: list[CaseOutcome] = field(default_factory=list)
    points: int = 0
    max_points: int = 0

    @property
    def name(self) -> str:
        return self.workspace.name

    def passed(self) -> int:
        return sum(1 for outcome in self.outcomes if isinstance(outcome, Correct))

    def __str__(self) -> str:
        verdicts = ''.join('.' if isinstance(o, Correct) else o.verdict[0] for o in self.outcomes)
        return f'{self.name}: {self.points}/{self.max_points} [{verdicts}]'


def compare(case: TestCase, output: str) -> CaseOutcome:
    """Correct if output equals the expected output line for line."""
    result = diff_lines(case.expected, output)
    if result.is_equal():
        return Correct(output)
    return Wrong(output, result)


def run_case(runner, case: TestCase, timeout: float) -> CaseOutcome:
    """Run one test case on a prepared runner.  Feeding the input and
    collecting the output both count against timeout.

    Raises:
        ExecutionError: if the program cannot be started or fed.
        CompileError: if the implicit compilation in run() fails.
    """
    # A fresh process per case, so no earlier output is left to discard.
    runner.run()
    runner.stdin(case.input)
    try:
        runner.wait(max(0.0, timeout - runner.runtime()))
    except subprocess.TimeoutExpired:
        log.debug('%s exceeded %.2fs, killing it', runner, timeout)
        try:
            runner.signal(signal.SIGKILL)
        except ExecutionError as exc:
            # It may have exited between the timeout and the kill.
            log.debug('%s', exc)
        while runner.running():
            time.sleep(KILL_POLL_INTERVAL)
        runner.close()
        return Error(signal.SIGKILL.value, TIMED_OUT)
    return compare(case, runner.read_all())


def judge_workspace(workspace: Path, config: Config, languages) -> SubmissionResult:
    """Compile and run one submission against all test cases, in order.

    Every failure is converted into Error outcomes; nothing is raised.
    """
    workspace = Path(workspace)
    result = SubmissionResult(workspace, max_points=config.max_points())
    cases = config.testcases

    def fail_rest(code: int, reason: str) -> SubmissionResult:
        result.outcomes.extend(Error(code, reason) for _ in cases[len(result.outcomes):])
        return result

    try:
        runner = get_runner(workspace, languages, config.entry, config.compile_timeout)
    except ResolutionError as exc:
        log.error('%s: %s', workspace.name, exc)
        return fail_rest(-1, str(exc))

    with runner:
        try:
            runner.add_deps(str(dep) for dep in config.dependencies)
            runner.prepare()
        except CompileError as exc:
            log.info('%s: compile error', workspace.name)
            return fail_rest(exc.code if exc.code is not None else -1, exc.stderr)
        except RunnerError as exc:
            log.error('%s: %s', workspace.name, exc)
            return fail_rest(-1, str(exc))

        for index, case in enumerate(cases):
            try:
                outcome = run_case(runner, case, config.timeout)
            except CompileError as exc:
                return fail_rest(exc.code if exc.code is not None else -1, exc.stderr)
            except ExecutionError as exc:
                log.error('%s: test case %d: %s', workspace.name, index + 1, exc)
                return fail_rest(-1, str(exc))
            log.debug('%s: test case %d: %s', workspace.name, index + 1, outcome.verdict)
            result.outcomes.append(outcome)
            if isinstance(outcome, Correct):
                result.points += case.points

    return result


def judge_all(workspaces, config: Config, languages, pool) -> list[SubmissionResult]:
    """Judge every workspace, each as one unit of work on the pool.

    Returns:
        list of SubmissionResult, in the order of workspaces.
    """
    workspaces = list(workspaces)
    log.debug('judging %d submissions with %d threads', len(workspaces), pool.threads)
    results = pool.map(lambda ws: judge_workspace(ws, config, languages), workspaces)
    for res in results:
        log.info('%s %s', res, os.fspath(res.workspace))
    log.info('All tests complete.')
    return results
