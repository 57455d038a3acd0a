"""Test canonical re-serialization of a Deck."""

import pytest

from slide_compiler import parse, to_markdown
from slide_compiler.models import Divider, Heading, InlineRun, ImagePlaceholder
from slide_compiler.serializer import block_to_lines

FULL_DECK = """<!-- Intro -->
[bg:glow-top-right-purple]
# Welcome **friends** [anvil]
A paragraph with `code`
**pause**
- first
- ## big item
[space:2]
$<Company confidential>
> Say hello
> then move on
---
[section]
[left, bottom]
## Part two
1. one
2. two
```python
def f():
    return 1
```
[image: a diagram, right]
---
---
<!-- Outro -->
## Grid slide
[grid]
- [icon: rocket]
- ## **Fast** launch
**pause**
- Safe
- [image: a shield]

- ### Third
<!-- = -->
- a plain list
---
[bg:gradient(45deg, #000000, rgb(0, 0, 255) 80%)]
### Thanks [typewriter]
---
images:
  a diagram:
    active: uploaded
    uploaded: https://x.test/diagram.png
---
"""


def structure(deck):
    return [
        (s.blocks, s.background, s.is_section, s.pacing_breakpoints, s.speaker_notes,
         s.section_name, s.footer, s.alignment)
        for s in deck.slides
    ]


def test_round_trip_preserves_structure():
    deck = parse(FULL_DECK)
    again = parse(to_markdown(deck))
    assert structure(again) == structure(deck)
    assert again.manifest() == deck.manifest()
    assert again.sections == deck.sections


def test_serialization_is_a_fixed_point():
    once = to_markdown(parse(FULL_DECK))
    assert to_markdown(parse(once)) == once


@pytest.mark.parametrize("text", [
    "",
    "# A\n---\n",
    "- a\n1. b\n- c",
    "```\n\n```",
    "> \n> x",
    "**pause**\n# A",
    "[grid]\n- a\n**pause**\n**pause**\n- b",
    "[grid]\n- a\n> note\n- listed",
    "[grid]\n- a\n$<foot>\n[grid]\n- b",
    "[grid]\n- a\n<!-- = -->\n**pause**\n# B",
])
def test_round_trip_edge_cases(text):
    deck = parse(text)
    assert structure(parse(to_markdown(deck))) == structure(deck)


def test_section_comment_only_written_on_change():
    text = to_markdown(parse("<!-- A -->\n# one\n---\n# two\n---\n<!-- B -->\n# three"))
    assert text.count("<!-- A -->") == 1
    assert text.count("<!-- B -->") == 1


def test_block_lines():
    assert block_to_lines(Heading(2, (InlineRun("Hi"),), "glow")) == ["## Hi [glow]"]
    assert block_to_lines(ImagePlaceholder("cat", "left")) == ["[image: cat, left]"]
    assert block_to_lines(Divider()) == ["[space]"]
    with pytest.raises(TypeError):
        block_to_lines("not a block")
