import shlex
import sys

import pytest

from bestest import languages

PYTHON = shlex.quote(sys.executable)


@pytest.fixture
def python_langs():
    """Default languages, with Python run by the interpreter running the tests."""
    return languages.load_language_config({'python': {'run': f'{PYTHON} {{mainfile}}'}})


@pytest.fixture
def checked_python():
    """A single compiled language: Python, byte-compiled as the compile step."""
    return languages.Languages({'checked': {
        'name': 'Checked Python',
        'priority': 1,
        'files': '*.py',
        'compile': f'{PYTHON} -m py_compile {{mainfile}}',
        'run': f'{PYTHON} {{mainfile}}',
    }})


@pytest.fixture
def make_workspace(tmp_path):
    def make(name, files):
        workspace = tmp_path / name
        for filename, content in files.items():
            path = workspace / filename
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return workspace
    return make
