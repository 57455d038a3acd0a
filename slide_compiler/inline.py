"""Inline emphasis scanning (``**bold**`` and `` `code` `` spans)."""
from typing import List, Tuple

from .models import InlineRun

EMPHASIS = "**"
CODE = "`"


def scan_inline(text: str) -> Tuple[InlineRun, ...]:
    """
    Split *text* into runs using paired delimiters.

    An opening delimiter without a matching closer, or with nothing between
    the pair, is kept as literal text.  Spans do not nest.
    """
    runs: List[InlineRun] = []
    literal: List[str] = []
    i = 0
    n = len(text)

    def flush():
        if literal:
            runs.append(InlineRun("".join(literal)))
            literal.clear()

    while i < n:
        if text.startswith(EMPHASIS, i):
            close = text.find(EMPHASIS, i + 2)
            if close > i + 2:
                flush()
                runs.append(InlineRun(text[i + 2:close], is_emphasized=True))
                i = close + 2
                continue
            literal.append(EMPHASIS)
            i += 2
            continue
        if text[i] == CODE:
            close = text.find(CODE, i + 1)
            if close > i + 1:
                flush()
                runs.append(InlineRun(text[i + 1:close], is_code=True))
                i = close + 1
                continue
        literal.append(text[i])
        i += 1

    flush()
    return tuple(runs)


def serialize_runs(runs: Tuple[InlineRun, ...]) -> str:
    """Inverse of :func:`scan_inline` for well-formed runs."""
    parts = []
    for run in runs:
        if run.is_code:
            parts.append(f"{CODE}{run.text}{CODE}")
        elif run.is_emphasized:
            parts.append(f"{EMPHASIS}{run.text}{EMPHASIS}")
        else:
            parts.append(run.text)
    return "".join(parts)
