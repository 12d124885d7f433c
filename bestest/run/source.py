"""
Runner for programs provided by source code, driven by the compile and
run command templates of the language configuration.
"""
import os
import shlex

from .runner import Runner
from . import rutil


class SourceRunner(Runner):
    """Runner for any language described by the language configuration.
    """

    def __init__(self, path, language, mainfile, compile_timeout=None):
        """Instantiate SourceRunner object

        Args:
            path (str): workspace directory of the submission.  All
                source files for the language found in it (recursively)
                belong to the program.

            language (bestest.languages.Language): language definition
                for the programming language of the code.

            mainfile (str): path of the entry point file.

            compile_timeout (float): limit in seconds for compilation.
        """
        super().__init__(path, language, mainfile, compile_timeout)
        self.mainclass = os.path.splitext(os.path.basename(self.mainfile))[0]
        self.Mainclass = self.mainclass[0].upper() + self.mainclass[1:]
        self.binary = os.path.join(self.path, 'run')

    def source_files(self):
        """Source files currently in the workspace (dependencies included)."""
        return self.language.get_source_files(rutil.list_files_recursive(self.path))

    def get_compilecmd(self):
        if self.language.compile is None:
            return None
        return shlex.split(self.language.compile.format(**self._get_substitution()))

    def get_runcmd(self):
        return shlex.split(self.language.run.format(**self._get_substitution()))

    def is_prepared(self):
        if self.language.compile is None:
            return True
        if '{binary}' in self.language.compile:
            return os.path.isfile(self.binary) and os.access(self.binary, os.X_OK)
        return self._prepared

    def _get_substitution(self):
        return {
            'path': shlex.quote(self.path),
            'files': ' '.join(shlex.quote(x) for x in self.source_files()),
            'mainfile': shlex.quote(self.mainfile),
            'mainclass': shlex.quote(self.mainclass),
            'Mainclass': shlex.quote(self.Mainclass),
            'binary': shlex.quote(self.binary),
        }
