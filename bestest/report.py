"""
Summaries of a judging session and their rendering as JSON, YAML or plain
text.
"""
import json
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal

import yaml
from pydantic import BaseModel, Field

from . import judge, unpacker
from .judgeconfig import Config
from .screener import SecurityFinding


class OutputFormat(StrEnum):
    JSON = 'json'
    YAML = 'yaml'
    PLAIN = 'plain'


class UnpackSummary(BaseModel):
    prepared: int = 0
    skipped: int = 0
    failed: int = 0


class TotalsSummary(BaseModel):
    submissions: int = 0
    submissions_with_issues: int = 0
    perfect_scores: int = 0
    max_points_per_submission: int = 0
    cases_total: int = 0
    cases_passed: int = 0


class SecurityIssue(BaseModel):
    """One finding; line and column are 1-based."""
    line: int
    column: int
    violation: str
    snippet: str


class FileFindings(BaseModel):
    file: str
    issues: list[SecurityIssue]


class SecuritySummary(BaseModel):
    flagged_files: int = 0
    pruned_submissions: list[str] = []
    findings: list[FileFindings] = []


class DiffSummary(BaseModel):
    additions: int
    removals: int


class CorrectReport(BaseModel):
    status: Literal['correct'] = 'correct'
    output: str


class WrongReport(BaseModel):
    status: Literal['wrong'] = 'wrong'
    output: str
    diff: DiffSummary


class ErrorReport(BaseModel):
    status: Literal['error'] = 'error'
    code: int
    reason: str


class CaseReport(BaseModel):
    index: int
    input: str
    expected: str
    points: int
    outcome: Annotated[CorrectReport | WrongReport | ErrorReport, Field(discriminator='status')]


class SubmissionReport(BaseModel):
    name: str
    path: str
    points_awarded: int
    max_points: int
    cases: list[CaseReport]


class RunReport(BaseModel):
    unpack: UnpackSummary
    totals: TotalsSummary
    security: SecuritySummary
    submissions: list[SubmissionReport]

    def scoreboard(self) -> list[tuple[str, int]]:
        return [(sub.name, sub.points_awarded) for sub in self.submissions]


def summarize_unpack(unpacked) -> UnpackSummary:
    summary = UnpackSummary()
    for res in unpacked:
        if not isinstance(res, unpacker.UnpackError):
            summary.prepared += 1
        elif res.ignored:
            summary.skipped += 1
        else:
            summary.failed += 1
    return summary


def summarize_security(findings: dict[Path, list[SecurityFinding]], pruned=()) -> SecuritySummary:
    files = [
        FileFindings(
            file=str(path),
            issues=[SecurityIssue(line=f.line + 1, column=f.column + 1,
                                  violation=f.category.value, snippet=f.snippet)
                    for f in issues],
        )
        for path, issues in sorted(findings.items())
    ]
    return SecuritySummary(flagged_files=len(files),
                           pruned_submissions=sorted(Path(p).name for p in pruned),
                           findings=files)


def summarize_outcome(outcome: judge.CaseOutcome) -> CorrectReport | WrongReport | ErrorReport:
    match outcome:
        case judge.Correct(output=output):
            return CorrectReport(output=output)
        case judge.Wrong(output=output, diff=diff):
            return WrongReport(output=output, diff=DiffSummary(additions=diff.count_additions(),
                                                               removals=diff.count_removals()))
        case judge.Error(code=code, reason=reason):
            return ErrorReport(code=code, reason=reason)
    raise TypeError(f'not a case outcome: {outcome!r}')


def summarize_submission(result: judge.SubmissionResult, config: Config) -> SubmissionReport:
    cases = [
        CaseReport(index=index, input=case.input, expected=case.expected, points=case.points,
                   outcome=summarize_outcome(outcome))
        for index, (case, outcome) in enumerate(zip(config.testcases, result.outcomes))
    ]
    return SubmissionReport(name=result.name, path=str(result.workspace),
                            points_awarded=result.points, max_points=result.max_points, cases=cases)


def build_report(session_result, config: Config) -> RunReport:
    """Summarize a bestest.pipeline.SessionResult.  Submissions are
    sorted by name."""
    submissions = sorted((summarize_submission(res, config) for res in session_result.results),
                         key=lambda sub: sub.name)
    max_points = config.max_points()
    totals = TotalsSummary(
        submissions=len(submissions),
        submissions_with_issues=sum(1 for sub in submissions if sub.points_awarded != max_points),
        perfect_scores=sum(1 for sub in submissions if sub.points_awarded == max_points),
        max_points_per_submission=max_points,
        cases_total=sum(len(sub.cases) for sub in submissions),
        cases_passed=sum(1 for sub in submissions for case in sub.cases if case.outcome.status == 'correct'),
    )
    return RunReport(
        unpack=summarize_unpack(session_result.unpacked),
        totals=totals,
        security=summarize_security(session_result.findings, session_result.pruned),
        submissions=submissions,
    )


def detect_output_format(path) -> tuple[OutputFormat, bool]:
    """Output format implied by a file name.

    Returns:
        pair (format, recognized); unrecognized extensions give plain
        text with recognized False.
    """
    ext = Path(path).suffix.lower().lstrip('.')
    if ext == 'json':
        return OutputFormat.JSON, True
    if ext in ('yaml', 'yml'):
        return OutputFormat.YAML, True
    if ext in ('txt', ''):
        return OutputFormat.PLAIN, True
    return OutputFormat.PLAIN, False


def render(report: RunReport, fmt: OutputFormat) -> str:
    if fmt == OutputFormat.JSON:
        return report.model_dump_json(indent=2) + '\n'
    if fmt == OutputFormat.YAML:
        return yaml.safe_dump(report.model_dump(mode='json'), sort_keys=False, allow_unicode=True)
    return render_plain(report)


def render_scoreboard(report: RunReport) -> str:
    return ''.join(f'{name}: {points}\n' for name, points in report.scoreboard())


def render_plain(report: RunReport) -> str:
    out = []
    unpack = report.unpack
    totals = report.totals
    out.append(f'Unpack summary: prepared={unpack.prepared}, skipped={unpack.skipped}, failed={unpack.failed}')
    out.append(f'Totals: submissions={totals.submissions}, with_issues={totals.submissions_with_issues}, '
               f'perfect={totals.perfect_scores}, cases_passed={totals.cases_passed}/{totals.cases_total} '
               f'(max_points={totals.max_points_per_submission})')
    if report.security.findings:
        out.append(f'Security: {report.security.flagged_files} flagged file(s).')
        for finding in report.security.findings:
            out.append(f'  - {finding.file}')
            for issue in finding.issues:
                out.append(f'      line {issue.line}, column {issue.column}: '
                           f'violation {issue.violation}, snippet {json.dumps(issue.snippet)}')
        if report.security.pruned_submissions:
            out.append(f'  not judged: {", ".join(report.security.pruned_submissions)}')

    for sub in report.submissions:
        out.append('')
        out.append(f'Submission: {sub.name} (path: {sub.path}) => {sub.points_awarded}/{sub.max_points}')
        for case in sub.cases:
            outcome = case.outcome
            if isinstance(outcome, CorrectReport):
                out.append(f'  - case {case.index} correct (+{case.points} pts)')
                if outcome.output:
                    out.append(f'      output: {json.dumps(outcome.output)}')
            elif isinstance(outcome, WrongReport):
                out.append(f'  - case {case.index} wrong (+0/{case.points})')
                out.append(f'      expected: {json.dumps(case.expected)}')
                out.append(f'      got: {json.dumps(outcome.output)}')
                out.append(f'      diff summary: +{outcome.diff.additions} additions, '
                           f'-{outcome.diff.removals} removals')
            else:
                out.append(f'  - case {case.index} error code {outcome.code} ({outcome.reason.strip()})')
    return '\n'.join(out) + '\n'
