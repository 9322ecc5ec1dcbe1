"""Assignment locator — finds ``<path> = <value>;`` lines in Dynamic.js.

Dynamic.js is treated as line-oriented text, not parsed.  A variable path
such as ``devDynamicContent.parent[0].custom_offer`` is an opaque string
embedded literally in a regular expression.  A line matches only when the
path is followed by whitespace and a single ``=``; a following ``.``,
``[`` or identifier character means a longer path and is rejected, so
``custom_offer.Url = ...`` never satisfies a lookup for ``custom_offer``.

Every matching line is reported; callers rewrite the first one only.

Usage::

    from bannerbuildr.generator.locator import find_assignment, replace_assignment

    match = find_assignment(source, "devDynamicContent.parent[0].headline")
    if match is not None:
        source = replace_assignment(source, match, "'Big Sale'")
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from bannerbuildr.schema.literals import string_literal_end
from bannerbuildr.schema.models import ROOT_OBJECT


_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")

_VARIABLE_RE = re.compile(
    ROOT_OBJECT + r"(?:\.[A-Za-z_$][\w$]*|\[\d+\])+(?=\s*=(?!=))"
)

_OPENERS = {"{": "}", "[": "]", "(": ")"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}

# A right-hand side ending in one of these continues on the next line
_CONTINUATIONS = ("+", ",", "\\", "(", "{", "[", "?", ":", "&&", "||")


# ---------------------------------------------------------------------------
# Match descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssignmentMatch:
    """One line assigning to the searched path."""
    target: str          # the path that matched (including any suffix)
    line_index: int      # 0-based line number
    offset: int          # character offset of the line start
    raw: str             # the full original line, ending included
    head: str            # text preceding the '='
    spacing: str         # whitespace after the '='
    value: str           # right-hand side as written, without ';'
    tail: str            # text after the statement (e.g. a comment)
    line_ending: str
    exact: bool          # False when matched through a suffix (path.Url)

    def rebuild(self, literal: str) -> str:
        """The line with its right-hand side replaced by ``literal``."""
        return f"{self.head}={self.spacing}{literal};{self.tail}{self.line_ending}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@lru_cache(maxsize=512)
def _assignment_pattern(path: str) -> re.Pattern:
    return re.compile(
        r"^(?P<head>.*?(?<![\w$.])" + re.escape(path) + r"(?![\w$.\[])\s*)"
        r"=(?![=>])(?P<spacing>[ \t]*)(?P<rhs>.*)$"
    )


def _split_lines(text: str) -> list[str]:
    return _LINE_RE.findall(text)


def _split_ending(line: str) -> tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1], line[-1]
    return line, ""


def _split_rhs(rhs: str) -> tuple[str, str]:
    """Split a right-hand side into (value, tail after the ';').

    The statement ends at the first ``;`` or ``//`` outside a string
    literal; an unterminated string swallows the rest of the line.
    """
    i = 0
    while i < len(rhs):
        ch = rhs[i]
        if ch in ("'", '"', "`"):
            end = string_literal_end(rhs, i)
            if end == -1:
                return rhs.rstrip(), ""
            i = end
            continue
        if ch == ";":
            return rhs[:i].rstrip(), rhs[i + 1:]
        if rhs.startswith("//", i) or rhs.startswith("/*", i):
            value = rhs[:i].rstrip()
            return value, rhs[len(value):]
        i += 1
    value = rhs.rstrip()
    return value, rhs[len(value):]


def _bracket_depth(value: str) -> int:
    depth = 0
    i = 0
    while i < len(value):
        ch = value[i]
        if ch in ("'", '"', "`"):
            end = string_literal_end(value, i)
            if end == -1:
                return depth + 1
            i = end
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        i += 1
    return depth


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def locate(source_text: str, path: str,
           suffix: str | None = None) -> list[AssignmentMatch]:
    """All lines assigning exactly to ``path`` (or ``path.suffix``).

    Returns an empty list when the path is never assigned.
    """
    target = f"{path}.{suffix}" if suffix else path
    pattern = _assignment_pattern(target)
    matches: list[AssignmentMatch] = []
    offset = 0
    for index, line in enumerate(_split_lines(source_text)):
        body, ending = _split_ending(line)
        m = pattern.match(body)
        if m:
            value, tail = _split_rhs(m.group("rhs"))
            matches.append(AssignmentMatch(
                target=target,
                line_index=index,
                offset=offset,
                raw=line,
                head=m.group("head"),
                spacing=m.group("spacing"),
                value=value,
                tail=tail,
                line_ending=ending,
                exact=suffix is None,
            ))
        offset += len(line)
    return matches


def find_assignment(source_text: str, path: str,
                    suffix: str | None = None) -> AssignmentMatch | None:
    """First line assigning to ``path`` (or ``path.suffix``), or None."""
    matches = locate(source_text, path, suffix)
    return matches[0] if matches else None


def is_multiline(match: AssignmentMatch) -> bool:
    """True when the assignment's value continues past its line.

    Unterminated strings, unbalanced brackets, an empty right-hand side and
    trailing operators all count.  Such assignments are not rewritten.
    """
    value = match.value.strip()
    if not value:
        return True
    if value[0] in ("'", '"', "`") and string_literal_end(value) == -1:
        return True
    if _bracket_depth(value) > 0:
        return True
    return value.endswith(_CONTINUATIONS)


def replace_assignment(source_text: str, match: AssignmentMatch,
                       literal: str) -> str:
    """Rewrite the matched line in place; all other text is untouched."""
    end = match.offset + len(match.raw)
    if source_text[match.offset:end] != match.raw:
        raise ValueError(
            f"Stale match for {match.target!r}: line {match.line_index} changed"
        )
    return source_text[:match.offset] + match.rebuild(literal) + source_text[end:]


def extract_variables(source_text: str) -> list[str]:
    """Distinct ``devDynamicContent`` assignment targets, in first-seen order."""
    seen: dict[str, None] = {}
    for m in _VARIABLE_RE.finditer(source_text):
        seen.setdefault(m.group(0), None)
    return list(seen)
