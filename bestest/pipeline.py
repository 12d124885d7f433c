"""
A judging session: unpack the target directory, screen the workspaces,
drop the flagged ones and judge the rest.
"""
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from . import judge, screener, unpacker
from .judgeconfig import Config
from .languages import Languages, load_language_config
from .pool import WorkerPool

log = logging.getLogger(__name__)


class JudgeError(Exception):
    """A session cannot produce any results."""
    pass


@dataclass
class SessionResult:
    unpacked: list[Path | unpacker.UnpackError] = field(default_factory=list)
    findings: dict[Path, list[screener.SecurityFinding]] = field(default_factory=dict)
    pruned: set[Path] = field(default_factory=set)
    results: list[judge.SubmissionResult] = field(default_factory=list)

    def workspaces(self) -> list[Path]:
        """Distinct workspaces produced by the unpacker, sorted by name."""
        return sorted({res for res in self.unpacked if isinstance(res, Path)})

    def unpack_errors(self) -> list[unpacker.UnpackError]:
        return [res for res in self.unpacked if isinstance(res, unpacker.UnpackError)]


class Session:
    """Owns the temporary root directory and the worker pool of one run.

    Use as a context manager; on exit the temporary root is removed unless
    the configuration asks to keep artifacts.
    """

    def __init__(self, config: Config, languages: Languages | None = None) -> None:
        self.config = config
        self.languages = languages if languages is not None else load_language_config(config.languages)
        self.pool = WorkerPool(config.threads)
        self.temp_root: Path | None = None

    def __enter__(self) -> 'Session':
        self.temp_root = Path(tempfile.mkdtemp(prefix='bestest-'))
        log.debug('session directory %s', self.temp_root)
        return self

    def __exit__(self, *exc) -> None:
        if self.temp_root is None:
            return
        if self.config.keep_artifacts:
            log.info('Keeping artifacts in %s', self.temp_root)
        else:
            log.debug('cleaning up...')
            shutil.rmtree(self.temp_root, ignore_errors=True)
        self.temp_root = None

    def unpack(self, result: SessionResult) -> list[Path]:
        assert self.temp_root is not None, 'session not entered'
        result.unpacked = unpacker.unpack_all(self.config.target, self.config, self.temp_root, self.pool)
        workspaces = result.workspaces()
        if not workspaces:
            raise JudgeError('Failed to unpack any submission from %s. '
                             'Are you sure the naming format "%s" is correct?'
                             % (self.config.target, self.config.format))
        return workspaces

    def screen(self, result: SessionResult, workspaces: list[Path]) -> list[Path]:
        """Screen the workspaces and return those that may be judged."""
        log.info('Starting safety checks...')
        result.findings = screener.screen_workspaces(workspaces, self.config.allow, self.languages, self.pool)
        if not result.findings:
            log.info('All safety checks passed.')
            return workspaces

        log.warning('Dangerous code detected.')
        for path, findings in sorted(result.findings.items()):
            for finding in findings:
                log.warning('%s:%d:%d: %s: %s', path, finding.line + 1, finding.column + 1,
                            finding.category.value, finding.snippet)
        log.warning('Aborting check for those files.')
        log.info('NOTE: if you want to allow potentially dangerous operations, configure it in "allow".')

        result.pruned = screener.flagged_workspaces(result.findings, self.temp_root)
        survivors = [ws for ws in workspaces if ws not in result.pruned]
        if not survivors:
            raise JudgeError('None passed the safety test. If you trust the submissions, '
                             'configure the "allow" setting in the configuration file.')
        return survivors

    def run(self) -> SessionResult:
        """Run the whole pipeline.

        Raises:
            JudgeError: if no submission was routed, or none survived
                the screening.
        """
        result = SessionResult()
        workspaces = self.unpack(result)
        survivors = self.screen(result, workspaces)
        log.info('Starting tests...')
        result.results = judge.judge_all(survivors, self.config, self.languages, self.pool)
        return result


def run_session(config: Config, languages: Languages | None = None) -> SessionResult:
    with Session(config, languages) as session:
        return session.run()
