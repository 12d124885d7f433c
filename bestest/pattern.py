"""
Naming patterns for submission files.

A pattern is a file name template such as ``{name}_{id}_{filename}.{extension}``.
Every placeholder becomes a named group of the resulting regular expression;
everything else must match literally.
"""
import re
import string

# Character class for each recognized placeholder
PLACEHOLDERS = {
    'name': r"[A-Za-z][A-Za-z' -]*",
    'alpha': r'[A-Za-z]+',
    'num': r'[0-9]+',
    'alnum': r'[A-Za-z0-9]+',
    'word': r'\w+',
    'filename': r'[^/\\]+?',
    'id': r'[A-Za-z0-9]+',
    'extension': r'tar\.gz|[A-Za-z0-9]+',
}


class FormatError(Exception):
    """The naming pattern cannot be turned into a regular expression."""
    pass


def compile_format(fmt: str) -> re.Pattern[str]:
    """Build the regular expression for a naming pattern.

    A placeholder occurring more than once is only captured the first
    time; later occurrences match the same character class without
    capturing.

    Raises:
        FormatError: on unknown placeholders or malformed braces.
    """
    try:
        parts = list(string.Formatter().parse(fmt))
    except ValueError as err:
        raise FormatError(f'Invalid naming format "{fmt}": {err}')

    seen: set[str] = set()
    regex = []
    for literal, field, spec, conversion in parts:
        regex.append(re.escape(literal))
        if field is None:
            continue
        if spec or conversion or field not in PLACEHOLDERS:
            raise FormatError(f'Unknown placeholder "{{{field}}}" in naming format "{fmt}"')
        if field in seen:
            regex.append(f'(?:{PLACEHOLDERS[field]})')
        else:
            seen.add(field)
            regex.append(f'(?P<{field}>{PLACEHOLDERS[field]})')
    return re.compile(r'\A' + ''.join(regex) + r'\Z')


def placeholders(fmt: str) -> set[str]:
    """The set of placeholders used in a naming pattern."""
    return set(field for _, field, _, _ in string.Formatter().parse(fmt)
               if field is not None)
