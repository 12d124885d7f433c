from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import config


class OrderBy(StrEnum):
    NAME = 'name'
    ID = 'id'


class TestCase(BaseModel):
    """One test case: text fed on stdin, the exact expected stdout, and the
    points awarded when they match."""

    __test__ = False  # not a pytest class

    model_config = ConfigDict(frozen=True, extra='forbid')

    input: str = ''
    expected: str = ''
    points: int = Field(default=0, ge=0)


class Config(BaseModel):
    """
    Judge configuration. Constructed once and passed explicitly to the
    unpacker, the screener and the harness.
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    target: Path = Path('.')
    threads: int = 4
    timeout_ms: int = Field(default=5000, gt=0)
    compile_timeout_ms: int = Field(default=60000, gt=0)
    testcases: list[TestCase] = []
    format: str = '{name}_{id}_{filename}.{extension}'
    orderby: OrderBy = OrderBy.NAME
    allow: list[str] = []
    entry: str = 'Main'
    dependencies: list[Path] = []
    keep_artifacts: bool = False
    languages: dict[str, dict[str, Any]] = {}

    @field_validator('threads')
    @classmethod
    def _at_least_one_thread(cls, value: int) -> int:
        return max(1, value)

    @property
    def timeout(self) -> float:
        """Per-case timeout in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def compile_timeout(self) -> float:
        return self.compile_timeout_ms / 1000.0

    def max_points(self) -> int:
        return sum(case.points for case in self.testcases)


def parse_config(data: dict, base_dir: Path | None = None) -> Config:
    """Validate a configuration dictionary.

    Relative paths in target and dependencies are taken relative to
    base_dir (typically the directory of the configuration file).

    Raises:
        pydantic.ValidationError: if the dictionary is not a valid configuration.
    """
    cfg = Config.model_validate(data)
    if base_dir is None:
        return cfg
    return cfg.model_copy(
        update={
            'target': _resolve(base_dir, cfg.target),
            'dependencies': [_resolve(base_dir, dep) for dep in cfg.dependencies],
        }
    )


def load(path: Path) -> Config:
    """Load the judge configuration from a YAML file."""
    path = Path(path)
    return parse_config(config.load_yaml_file(path), base_dir=path.parent)


def default_config_dict() -> dict:
    """A bare configuration, written by `bestest --init`."""
    data = Config(
        testcases=[TestCase(input='3\n4\n', expected='7\n', points=10)],
    ).model_dump(mode='json', exclude={'languages'})
    data['target'] = 'submissions'
    return data


def _resolve(base_dir: Path, path: Path) -> Path:
    return path if path.is_absolute() else base_dir / path
