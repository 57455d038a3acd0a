"""Test inline emphasis and code span scanning."""

from slide_compiler.inline import scan_inline, serialize_runs
from slide_compiler.models import InlineRun


def test_plain_text_is_one_run():
    assert scan_inline("hello world") == (InlineRun("hello world"),)


def test_bold_and_code_spans():
    runs = scan_inline("use **bold** and `code` here")
    assert runs == (
        InlineRun("use "),
        InlineRun("bold", is_emphasized=True),
        InlineRun(" and "),
        InlineRun("code", is_code=True),
        InlineRun(" here"),
    )


def test_unpaired_delimiters_stay_literal():
    assert scan_inline("a ** b") == (InlineRun("a ** b"),)
    assert scan_inline("it`s") == (InlineRun("it`s"),)


def test_empty_pair_is_literal():
    assert scan_inline("****") == (InlineRun("****"),)
    assert scan_inline("``") == (InlineRun("``"),)


def test_emphasis_inside_code_is_not_scanned():
    runs = scan_inline("`a ** b`")
    assert runs == (InlineRun("a ** b", is_code=True),)


def test_serialize_runs_round_trip():
    text = "mix **bold** with `x = 1` and more"
    assert serialize_runs(scan_inline(text)) == text


def test_empty_string():
    assert scan_inline("") == ()
