"""
Markdown task parsing utilities.

Task lines are read in two steps. ``tokenize`` splits a physical line into
checkbox, due-date, scheduled-date, identifier, whitespace and text
tokens in a single left-to-right scan. ``parse_task_line`` then groups the
tokens into logical tasks, one per checkbox.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import List, NamedTuple, Optional

from ..utils.date import format_date, parse_date


DUE_MARKER = '📅'
SCHEDULED_MARKER = '⏳'
SECTION_PREFIX = '## '
DEFAULT_EXCLUSION_TAG = '#cl'

CHECKBOX = 'CHECKBOX'
DUE = 'DUE'
SCHEDULED = 'SCHEDULED'
COMMENT_ID = 'COMMENT_ID'
CARET_ID = 'CARET_ID'
SPACE = 'SPACE'
TEXT = 'TEXT'

TOKEN_KINDS = (CHECKBOX, DUE, SCHEDULED, COMMENT_ID, CARET_ID, SPACE, TEXT)
ID_TOKENS = (COMMENT_ID, CARET_ID)

_ID = r'[A-Za-z0-9-]+'
_DATE = r'\d{4}-\d{1,2}-\d{1,2}'

TOKEN_RE = re.compile('|'.join([
    r'(?P<CHECKBOX>[-*][ \t]+\[(?P<mark>[ xX])\](?=\s|$))',
    rf'(?P<DUE>{DUE_MARKER}[ \t]*(?P<due>{_DATE}))',
    rf'(?P<SCHEDULED>{SCHEDULED_MARKER}[ \t]*{_DATE})',
    rf'(?P<COMMENT_ID><!--[ \t]*id:[ \t]*(?P<comment_id>{_ID})[ \t]*-->)',
    rf'(?P<CARET_ID>(?<!\S)\^(?P<caret_id>{_ID})(?=\s|$))',
    r'(?P<SPACE>\s+)',
    rf'(?P<TEXT>[^\s{DUE_MARKER}{SCHEDULED_MARKER}]+|[{DUE_MARKER}{SCHEDULED_MARKER}])',
]))

_TOKEN_VALUE_GROUPS = {
    CHECKBOX: 'mark',
    DUE: 'due',
    COMMENT_ID: 'comment_id',
    CARET_ID: 'caret_id',
}


class Token(NamedTuple):
    kind: str
    text: str
    value: Optional[str] = None


@dataclass
class ParsedTask:
    """One logical task recognised on a line."""

    indent: str
    bullet: str
    mark: str
    title: str
    due_date: Optional[date] = None
    task_id: Optional[str] = None
    id_style: Optional[str] = None
    excluded: bool = False
    body: List[Token] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.mark in ('x', 'X')

    @property
    def is_task(self) -> bool:
        """False for bare checkboxes that carry no title."""
        return bool(self.title)

    @property
    def raw(self) -> str:
        """The segment as written, checkbox included."""
        body = ''.join(token.text for token in self.body).strip()
        head = f"{self.bullet} [{self.mark}]"
        return f"{head} {body}" if body else head


def tokenize(line: str) -> List[Token]:
    """Split a line into tokens. Every character belongs to exactly one token."""
    tokens: List[Token] = []
    for match in TOKEN_RE.finditer(line):
        for kind in TOKEN_KINDS:
            if match.group(kind) is not None:
                value_group = _TOKEN_VALUE_GROUPS.get(kind)
                value = match.group(value_group) if value_group else None
                tokens.append(Token(kind, match.group(kind), value))
                break
    return tokens


@lru_cache(maxsize=16)
def _exclusion_re(tag: str):
    return re.compile(r'(?<![\w#])' + re.escape(tag) + r'(?!\w)')


def contains_exclusion_tag(text: str, tag: str = DEFAULT_EXCLUSION_TAG) -> bool:
    """
    Check whether text carries the exclusion tag as a standalone token.

    The match is case-sensitive. A tag glued to a longer word (``#cleanup``,
    ``work#cl``, ``#cl_tag``) or doubled (``##cl``) does not count, while
    surrounding punctuation (``(#cl)``, ``#cl,``, ``#cl-``) does.
    """
    if not tag:
        return False
    return _exclusion_re(tag).search(text) is not None


def section_name(line: str) -> Optional[str]:
    """Return the list named by a ``## `` section header, if the line is one."""
    if not line.startswith(SECTION_PREFIX):
        return None
    name = line[len(SECTION_PREFIX):].strip()
    return name or None


def _build_task(indent: str, checkbox: Token, body: List[Token], exclusion_tag: str) -> ParsedTask:
    title_parts: List[str] = []
    due_date: Optional[date] = None
    task_id: Optional[str] = None
    id_style: Optional[str] = None

    for token in body:
        if token.kind in (TEXT, SPACE):
            title_parts.append(token.text)
        elif token.kind == DUE:
            # Malformed dates are dropped along with their marker
            parsed = parse_date(token.value)
            if due_date is None and parsed is not None:
                due_date = parsed
        elif token.kind == COMMENT_ID:
            task_id, id_style = token.value, 'comment'
        elif token.kind == CARET_ID:
            task_id, id_style = token.value, 'caret'

    task = ParsedTask(
        indent=indent,
        bullet=checkbox.text[0],
        mark=checkbox.value or ' ',
        title=' '.join(''.join(title_parts).split()),
        due_date=due_date,
        task_id=task_id,
        id_style=id_style,
        body=body,
    )
    task.excluded = contains_exclusion_tag(task.raw, exclusion_tag)
    return task


def parse_task_line(line: str, exclusion_tag: str = DEFAULT_EXCLUSION_TAG) -> List[ParsedTask]:
    """
    Parse a markdown line into the logical tasks it holds.

    A line is a task line when its first non-blank token is a checkbox.
    Every further checkbox on the same line starts another task.

    Args:
        line: Raw markdown line without its newline
        exclusion_tag: Tag marking document-only checklist items

    Returns:
        Tasks in line order; empty if the line is not a task line
    """
    tokens = tokenize(line.rstrip('\r'))
    index = 0
    indent = ''
    if tokens and tokens[0].kind == SPACE:
        indent = tokens[0].text
        index = 1
    if index >= len(tokens) or tokens[index].kind != CHECKBOX:
        return []

    tasks: List[ParsedTask] = []
    checkbox = tokens[index]
    body: List[Token] = []
    for token in tokens[index + 1:]:
        if token.kind == CHECKBOX:
            tasks.append(_build_task(indent, checkbox, body, exclusion_tag))
            checkbox, body = token, []
        else:
            body.append(token)
    tasks.append(_build_task(indent, checkbox, body, exclusion_tag))
    return tasks


def render_task(task: ParsedTask, task_id: Optional[str] = None,
                completed: Optional[bool] = None) -> str:
    """
    Re-render a parsed task in canonical form.

    The body keeps its text, dates and tags as written; identifier tokens
    of either encoding are removed and ``task_id`` is appended as ``^ID``.

    Args:
        task: Parsed task to render
        task_id: Identifier to append, or None for no identifier
        completed: New completion state, or None to keep the current mark
    """
    if completed is None:
        mark = task.mark
    elif completed:
        mark = task.mark if task.completed else 'x'
    else:
        mark = ' '

    pieces: List[str] = []
    for token in task.body:
        if token.kind in ID_TOKENS:
            if pieces and pieces[-1].isspace():
                pieces.pop()
            continue
        pieces.append(token.text)
    body = ''.join(pieces).strip()

    line = f"{task.indent}{task.bullet} [{mark}]"
    if body:
        line = f"{line} {body}"
    if task_id:
        line = f"{line} ^{task_id}"
    return line


def format_task_line(
    title: str,
    completed: bool = False,
    due_date: Optional[date] = None,
    task_id: Optional[str] = None,
    indent: str = ""
) -> str:
    """
    Format a task into markdown line format.

    Args:
        title: Task title
        completed: Completion state
        due_date: Optional due date
        task_id: Optional block identifier
        indent: Indentation string

    Returns:
        Formatted markdown task line
    """
    parts = [f"{indent}- [{'x' if completed else ' '}]", title]

    if due_date:
        parts.append(f"{DUE_MARKER} {format_date(due_date)}")

    if task_id:
        parts.append(f"^{task_id}")

    return ' '.join(parts)
