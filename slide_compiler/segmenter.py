"""Split classified lines into per-slide chunks."""
from dataclasses import dataclass, field
from typing import List

from .tokenizer import ClassifiedLine, LineKind


@dataclass
class SlideChunk:
    index: int
    lines: List[ClassifiedLine] = field(default_factory=list)

    @property
    def first_line_number(self) -> int:
        return self.lines[0].line_number if self.lines else 0


def segment(lines: List[ClassifiedLine]) -> List[SlideChunk]:
    """
    Group lines into slides on ``SLIDE_BREAK`` lines.

    Breaks inside a code fence were already classified as ``CODE``, so the
    result always has ``1 + breaks`` chunks; adjacent breaks give an empty chunk.
    """
    chunks = [SlideChunk(index=0)]
    for line in lines:
        if line.kind is LineKind.SLIDE_BREAK:
            chunks.append(SlideChunk(index=len(chunks)))
            continue
        chunks[-1].lines.append(line)
    return chunks
