"""Package for compiling and running submissions.
"""
import logging
import os

from .errors import RunnerError, ResolutionError, CompileError, ExecutionError
from .runner import Runner, ExitCode
from .source import SourceRunner
from .java import JavaRunner
from . import rutil

log = logging.getLogger(__name__)

# Runner class by language id.  Languages not listed here are run by
# SourceRunner from their compile/run templates alone.
RUNNERS: dict[str, type[Runner]] = {
    'java': JavaRunner,
}


def find_entry(files, entry):
    """Pick the entry point among a submission's source files.

    In order of preference: the file named entry (ignoring extension),
    a file named main (any case), the only file.

    Args:
        files (list of str): source files of the submission.
        entry (str): configured entry point name, e.g. "Main".

    Returns:
        str, path of the entry point.

    Raises:
        ResolutionError: no files, or more than one candidate.
    """
    def stem(path):
        return os.path.splitext(os.path.basename(path))[0]

    if not files:
        raise ResolutionError('unable to find entry point: no source files')
    for candidates in ([f for f in files if stem(f) == entry],
                       [f for f in files if stem(f).lower() == 'main']):
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            raise ResolutionError('ambiguous entry point: %s'
                                  % ', '.join(sorted(os.path.basename(f) for f in candidates)))
    if len(files) == 1:
        return files[0]
    raise ResolutionError('ambiguous entry point: %d candidate files and none is named %s or main'
                          % (len(files), entry))


def get_runner(path, language_config, entry='Main', compile_timeout=None):
    """Get a Runner for a submission workspace.

    Args:
        path (str): workspace directory of the submission.

        language_config (bestest.languages.Languages): used for
            detecting the language of the submission and for how to
            compile and run it.

        entry (str): configured name of the entry point.

        compile_timeout (float): limit in seconds for compilation.

    Returns:
        a Runner instance.

    Raises:
        ResolutionError: if the language or entry point cannot be
            determined.
    """
    path = str(path)
    if not os.path.isdir(path):
        raise ResolutionError('%s is not a directory' % path)
    files = rutil.list_files_recursive(path)
    lang = language_config.detect_language(files)
    if lang is None:
        raise ResolutionError('could not detect the language of %s' % os.path.basename(path))
    mainfile = find_entry(lang.get_source_files(files), entry)
    log.debug('%s: %s entry point %s', os.path.basename(path), lang.name, mainfile)
    runner_class = RUNNERS.get(lang.lang_id, SourceRunner)
    return runner_class(path, lang, mainfile, compile_timeout)
