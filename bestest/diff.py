"""
Line based comparison of expected and actual program output.

The diff is a histogram diff: within a region, the rarest line common to
both sides anchors the longest matching block around it, and the regions
before and after the block are diffed recursively.  Lines keep their
terminators, so "7" and "7\\n" are different lines.
"""
import difflib
import enum
from dataclasses import dataclass

# Lines occurring more often than this are not used as anchors.
MAX_CHAIN_LENGTH = 64


class HunkKind(enum.Enum):
    REMOVAL = 'removal'
    INSERTION = 'insertion'
    REPLACEMENT = 'replacement'


@dataclass(frozen=True)
class Hunk:
    """A maximal run of differing lines.

    before/after are half-open line ranges into expected/actual.
    """
    before: range
    after: range
    removed: tuple[str, ...]
    added: tuple[str, ...]

    @property
    def kind(self) -> HunkKind:
        if not self.added:
            return HunkKind.REMOVAL
        if not self.removed:
            return HunkKind.INSERTION
        return HunkKind.REPLACEMENT


@dataclass(frozen=True)
class Diff:
    hunks: tuple[Hunk, ...]

    def is_equal(self) -> bool:
        return not self.hunks

    def count_additions(self) -> int:
        return sum(len(hunk.added) for hunk in self.hunks)

    def count_removals(self) -> int:
        return sum(len(hunk.removed) for hunk in self.hunks)

    def render(self) -> str:
        """Human readable listing of the mismatched line ranges."""
        out = []
        for hunk in self.hunks:
            out.append('@@ expected %s, got %s (%s) @@' % (_fmt_range(hunk.before), _fmt_range(hunk.after), hunk.kind.value))
            out.extend('-' + _show(line) for line in hunk.removed)
            out.extend('+' + _show(line) for line in hunk.added)
        return '\n'.join(out)

    def __str__(self) -> str:
        return self.render()


def split_lines(text: str) -> list[str]:
    """Split text into lines, each keeping its trailing newline."""
    lines = text.split('\n')
    ret = [line + '\n' for line in lines[:-1]]
    if lines[-1]:
        ret.append(lines[-1])
    return ret


def diff_lines(expected: str, actual: str) -> Diff:
    """Diff expected against actual output, line by line."""
    before = split_lines(expected)
    after = split_lines(actual)
    hunks: list[Hunk] = []
    _diff_region(before, 0, len(before), after, 0, len(after), hunks)
    return Diff(tuple(_merge_adjacent(hunks)))


def _diff_region(a: list[str], a_lo: int, a_hi: int, b: list[str], b_lo: int, b_hi: int, out: list[Hunk]) -> None:
    # Regions are processed left to right; the stack holds those not yet visited.
    stack = [(a_lo, a_hi, b_lo, b_hi)]
    while stack:
        a_lo, a_hi, b_lo, b_hi = stack.pop()

        # Common prefix and suffix
        while a_lo < a_hi and b_lo < b_hi and a[a_lo] == b[b_lo]:
            a_lo += 1
            b_lo += 1
        while a_lo < a_hi and b_lo < b_hi and a[a_hi - 1] == b[b_hi - 1]:
            a_hi -= 1
            b_hi -= 1

        if a_lo == a_hi and b_lo == b_hi:
            continue
        if a_lo == a_hi or b_lo == b_hi:
            out.append(_hunk(a, a_lo, a_hi, b, b_lo, b_hi))
            continue

        anchor, too_common = _find_anchor(a, a_lo, a_hi, b, b_lo, b_hi)
        if anchor is None:
            if too_common:
                _fallback(a, a_lo, a_hi, b, b_lo, b_hi, out)
            else:
                out.append(_hunk(a, a_lo, a_hi, b, b_lo, b_hi))
            continue
        a_start, a_end, b_start, b_end = anchor
        stack.append((a_end, a_hi, b_end, b_hi))
        stack.append((a_lo, a_start, b_lo, b_start))


def _find_anchor(a, a_lo, a_hi, b, b_lo, b_hi):
    """Find the matching block built around the rarest common line.

    Returns:
        pair (block, too_common): block is (a_start, a_end, b_start,
        b_end), or None if the region has no usable common line;
        too_common tells whether common lines were skipped for
        occurring too often.
    """
    occurrences: dict[str, list[int]] = {}
    for i in range(a_lo, a_hi):
        occurrences.setdefault(a[i], []).append(i)

    best = None
    best_count = MAX_CHAIN_LENGTH + 1
    best_len = 0
    too_common = False
    j = b_lo
    while j < b_hi:
        positions = occurrences.get(b[j])
        if positions is None:
            j += 1
            continue
        if len(positions) > MAX_CHAIN_LENGTH:
            too_common = True
            j += 1
            continue
        next_j = j + 1
        for i in positions:
            if len(positions) > best_count:
                break
            # Extend the match around (i, j) in both directions
            s_a, s_b = i, j
            while s_a > a_lo and s_b > b_lo and a[s_a - 1] == b[s_b - 1]:
                s_a -= 1
                s_b -= 1
            e_a, e_b = i + 1, j + 1
            count = len(positions)
            while e_a < a_hi and e_b < b_hi and a[e_a] == b[e_b]:
                count = min(count, len(occurrences[a[e_a]]))
                e_a += 1
                e_b += 1
            length = e_a - s_a
            if count < best_count or (count == best_count and length > best_len):
                best = (s_a, e_a, s_b, e_b)
                best_count = count
                best_len = length
            next_j = max(next_j, e_b)
        j = next_j

    return best, too_common


def _fallback(a, a_lo, a_hi, b, b_lo, b_hi, out):
    matcher = difflib.SequenceMatcher(None, a[a_lo:a_hi], b[b_lo:b_hi], autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag != 'equal':
            out.append(_hunk(a, a_lo + i1, a_lo + i2, b, b_lo + j1, b_lo + j2))


def _hunk(a, a_lo, a_hi, b, b_lo, b_hi) -> Hunk:
    return Hunk(before=range(a_lo, a_hi), after=range(b_lo, b_hi),
                removed=tuple(a[a_lo:a_hi]), added=tuple(b[b_lo:b_hi]))


def _merge_adjacent(hunks: list[Hunk]) -> list[Hunk]:
    ret: list[Hunk] = []
    for hunk in hunks:
        if ret and ret[-1].before.stop == hunk.before.start and ret[-1].after.stop == hunk.after.start:
            prev = ret.pop()
            hunk = Hunk(before=range(prev.before.start, hunk.before.stop),
                        after=range(prev.after.start, hunk.after.stop),
                        removed=prev.removed + hunk.removed,
                        added=prev.added + hunk.added)
        ret.append(hunk)
    return ret


def _fmt_range(r: range) -> str:
    if len(r) == 0:
        return 'none at line %d' % (r.start + 1)
    if len(r) == 1:
        return 'line %d' % (r.start + 1)
    return 'lines %d-%d' % (r.start + 1, r.stop)


def _show(line: str) -> str:
    if line.endswith('\n'):
        return line[:-1]
    return line + '  (no newline at end)'
