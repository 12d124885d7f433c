"""
Runner for Java submissions: either source code compiled with javac, or a
runnable jar.
"""
import logging
import os
import re
import shlex

from .source import SourceRunner

log = logging.getLogger(__name__)

_PACKAGE_RE = re.compile(r'^\s*package\s+([\w.]+)\s*;', re.MULTILINE)


class JavaRunner(SourceRunner):
    """Runner for Java.

    Source submissions are compiled in place (class files end up in the
    workspace, laid out by package) and run by main class name with the
    workspace as class path.  A jar entry point is run directly and
    needs no compilation.
    """

    def __init__(self, path, language, mainfile, compile_timeout=None):
        super().__init__(path, language, mainfile, compile_timeout)
        self.is_jar = self.mainfile.endswith('.jar')
        if self.is_jar:
            log.info('detected java executable archive %s', os.path.basename(self.mainfile))
        else:
            package = self._package()
            if package:
                self.mainclass = '%s.%s' % (package, self.mainclass)


    def source_files(self):
        return [x for x in super().source_files() if x.endswith('.java')]


    def get_compilecmd(self):
        if self.is_jar:
            return None
        return super().get_compilecmd()


    def get_runcmd(self):
        if self.is_jar:
            launcher = shlex.split(self.language.run)[0]
            return [launcher, '-jar', self.mainfile]
        return super().get_runcmd()


    def is_prepared(self):
        if self.is_jar:
            return True
        return os.path.isfile(self.class_file())


    def class_file(self):
        """Path of the compiled main class."""
        return os.path.join(self.path, *self.mainclass.split('.')) + '.class'


    def _package(self):
        try:
            with open(self.mainfile, 'r', encoding='utf-8', errors='replace') as f:
                match = _PACKAGE_RE.search(f.read())
        except OSError:
            return None
        return match.group(1) if match else None
