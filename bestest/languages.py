"""
The table of programming languages submissions may be written in: how to
recognize their source files and how to compile and run them.
"""
import fnmatch
import os
import re
import string

from . import config


class LanguageConfigError(Exception):
    """Exception class for errors in language configuration."""
    pass


# Placeholders usable in compile and run commands
VARIABLES = {'path', 'files', 'binary', 'mainfile', 'mainclass', 'Mainclass'}
# Placeholders naming the entry point; exactly one of them must be used
ENTRY_VARIABLES = {'binary', 'mainfile', 'mainclass', 'Mainclass'}

_REQUIRED = ('name', 'priority', 'files', 'run')
_ID_RE = re.compile(r'[a-z][a-z0-9]*\Z')


def command_variables(command: str) -> set[str]:
    """Placeholders appearing in a command template."""
    return {field for _, field, _, _ in string.Formatter().parse(command) if field is not None}


class Language(object):
    """
    A single language of the table.

    Attributes:
        lang_id (str): identifier, lower case letters and digits.
        name (str): display name.
        priority (int): breaks ties in detect_language, higher wins.
        files (list of str): globs matched against file base names.
        shebang (re.Pattern or None): if set, a source file's first line
            must match it.
        compile (str or None): compile command template.
        run (str): run command template.
    """

    def __init__(self, lang_id: str, lang_spec: dict) -> None:
        if not isinstance(lang_id, str):
            raise TypeError('language id must be a string, not %s' % type(lang_id).__name__)
        if not _ID_RE.match(lang_id):
            raise LanguageConfigError('Invalid language ID "%s"' % lang_id)
        self.lang_id = lang_id
        self.name: str | None = None
        self.priority: int | None = None
        self.files: list[str] | None = None
        self.shebang: re.Pattern | None = None
        self.compile: str | None = None
        self.run: str | None = None
        self.update(lang_spec)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return 'Language(%r, priority=%r)' % (self.lang_id, self.priority)

    def update(self, values: dict) -> None:
        """Change some of the properties, then check that the language
        is still completely and consistently described.

        Raises:
            LanguageConfigError: on unknown keys, values of the wrong
                type, or an inconsistent result.
            re.error: if the shebang is not a valid regular expression.
        """
        unknown = set(values) - set(_REQUIRED) - {'shebang', 'compile'}
        if unknown:
            raise LanguageConfigError('Unknown key "%s" specified for language %s'
                                      % (sorted(unknown)[0], self.lang_id))
        for key, value in values.items():
            expected = int if key == 'priority' else str
            if not isinstance(value, expected) or isinstance(value, bool):
                raise LanguageConfigError('Language %s: %s must be %s but is %s.'
                                          % (self.lang_id, key, expected.__name__, type(value).__name__))
            if key == 'shebang':
                self.shebang = re.compile(value)
            elif key == 'files':
                self.files = value.split()
            else:
                setattr(self, key, value)
        self._validate()

    def _validate(self) -> None:
        for key in _REQUIRED:
            if getattr(self, key) is None:
                raise LanguageConfigError('Language %s has no %s' % (self.lang_id, key))

        used = command_variables(self.run)
        if self.compile is not None:
            used |= command_variables(self.compile)
        if used - VARIABLES:
            raise LanguageConfigError('Unknown variable "{%s}" used for language %s'
                                      % (sorted(used - VARIABLES)[0], self.lang_id))
        entries = used & ENTRY_VARIABLES
        if not entries:
            raise LanguageConfigError('No entry point variable used for language %s' % self.lang_id)
        if len(entries) > 1:
            raise LanguageConfigError('More than one entry point type variable (%s) used for language %s'
                                      % (', '.join(sorted(entries)), self.lang_id))

    def is_source_file(self, path: str) -> bool:
        basename = os.path.basename(path)
        if not any(fnmatch.fnmatch(basename, glob) for glob in self.files):
            return False
        return self.shebang is None or self._first_line_matches(path)

    def get_source_files(self, file_list: list[str]) -> list[str]:
        """The files of file_list that are source files of this language."""
        return [path for path in file_list if self.is_source_file(path)]

    def _first_line_matches(self, path: str) -> bool:
        try:
            with open(path, 'r', errors='replace') as f:
                first = f.readline()
        except OSError:
            return False
        return self.shebang.search(first) is not None


class Languages(object):
    """A set of languages, keyed by id."""

    def __init__(self, data: dict | None = None) -> None:
        self.languages: dict[str, Language] = {}
        if data is not None:
            self.update(data)

    def __iter__(self):
        return iter(self.languages.values())

    def __contains__(self, lang_id) -> bool:
        return lang_id in self.languages

    def detect_language(self, file_list: list[str]) -> Language | None:
        """The language claiming the most files of file_list, ties broken
        by priority.  None if no language claims any file."""
        best = None
        best_key = (0, 0)
        for lang in self:
            key = (len(lang.get_source_files(file_list)), lang.priority)
            if key[0] and (best is None or key > best_key):
                best, best_key = lang, key
        return best

    def get(self, lang_id: str) -> Language | None:
        if not isinstance(lang_id, str):
            raise LanguageConfigError('Config file error: language IDs must be strings, but %s is %s.'
                                      % (lang_id, type(lang_id)))
        return self.languages.get(lang_id)

    def update(self, data: dict) -> None:
        """Add languages, or change existing ones, from a dict mapping ids
        to (possibly partial) language specifications.

        Raises:
            LanguageConfigError: on malformed data, or if two languages
                end up with the same priority.
        """
        if not isinstance(data, dict):
            raise LanguageConfigError('Config file error: content must be a dictionary, but is %s.' % type(data))

        for lang_id, spec in data.items():
            if not isinstance(lang_id, str):
                raise LanguageConfigError('Config file error: language IDs must be strings, but %s is %s.'
                                          % (lang_id, type(lang_id)))
            if isinstance(spec, Language):
                self.languages[lang_id] = spec
            elif not isinstance(spec, dict):
                raise LanguageConfigError('Config file error: language spec must be a dictionary, '
                                          'but spec of language %s is %s.' % (lang_id, type(spec)))
            elif lang_id in self.languages:
                self.languages[lang_id].update(spec)
            else:
                self.languages[lang_id] = Language(lang_id, spec)

        owners: dict[int, str] = {}
        for lang in self:
            if lang.priority in owners:
                raise LanguageConfigError('Languages %s and %s both have priority %d.'
                                          % (lang.lang_id, owners[lang.priority], lang.priority))
            owners[lang.priority] = lang.lang_id


def load_language_config(overrides: dict | None = None) -> Languages:
    """Load the language table from the configuration files, then apply
    overrides (typically the "languages" section of the judge
    configuration) on top.
    """
    languages = Languages(config.load_config('languages.yaml'))
    if overrides:
        languages.update(overrides)
    return languages
