## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from cmdsplice.scanner import Scanner, normalize_source
from cmdsplice.errors import SpliceSyntaxError, SpliceIncompleteParse


def _types(source: str) -> list[str]:
    return [t.type for t in Scanner(source).scan()]

def _values(source: str, type_: str) -> list[str]:
    return [t.value for t in Scanner(source).scan() if t.type == type_]


def test_plain_invocation_tokens():
    assert _types("cmd(a b)") == ['IDENT', 'LPAR', 'TEXT', '_ARG_END', 'TEXT', '_ARG_END', 'RPAR']


def test_variable_reference_tokens():
    assert _types("cmd(${x})") == ['IDENT', 'LPAR', 'VAR_OPEN', 'TEXT', '_REF_CLOSE', '_ARG_END', 'RPAR']


def test_variable_namespaces_are_token_values():
    assert _values("cmd(${a} $ENV{b} $CACHE{c})", 'VAR_OPEN') == ['', 'ENV', 'CACHE']


def test_command_reference_tokens():
    assert _types("cmd(${f(x)})") == ['IDENT', 'LPAR', '_CMD_OPEN', 'IDENT', 'LPAR', 'TEXT', '_ARG_END', 'RPAR',
                                      '_REF_CLOSE', '_ARG_END', 'RPAR']


def test_dollar_without_brace_is_text():
    assert _values("cmd($x a$)", 'TEXT') == ['$x', 'a$']


def test_text_around_reference_is_split():
    assert _values("cmd(pre_${x}_post)", 'TEXT') == ['pre_', 'x', '_post']


def test_quoted_argument_keeps_whitespace():
    assert _types('cmd("a b")') == ['IDENT', 'LPAR', 'QUOTE', 'TEXT', 'QUOTE', 'RPAR']
    assert _values('cmd("a b")', 'TEXT') == ['a b']


def test_quote_ends_unquoted_argument():
    assert _types('cmd(a"b")') == ['IDENT', 'LPAR', 'TEXT', '_ARG_END', 'QUOTE', 'TEXT', 'QUOTE', 'RPAR']


def test_escape_sequences_are_decoded():
    assert _values(r'cmd("a\tb\nc\"d")', 'TEXT') == ['a\tb\nc"d']
    assert _values(r'cmd(a\ b)', 'TEXT') == ['a b']


def test_escaped_semicolon_is_kept():
    assert _values(r'cmd(a\;b)', 'TEXT') == [r'a\;b']


def test_line_continuation_in_quoted_argument():
    assert _values('cmd("a\\\nb")', 'TEXT') == ['ab']


def test_invalid_escape_sequence():
    with pytest.raises(SpliceSyntaxError) as exc:
        list(Scanner(r'cmd(\q)').scan())
    assert (exc.value.line, exc.value.column) == (1, 5)


def test_bracket_argument_is_verbatim():
    assert _values('cmd([=[a ${b} "c"]=])', 'BRACKET') == ['a ${b} "c"']
    assert _values('cmd([[\nfirst]])', 'BRACKET') == ['first']


def test_comments_are_skipped():
    assert _values('# line\ncmd(a # trailing\n b) #[[ bracket\ncomment ]] other()', 'IDENT') == ['cmd', 'other']
    assert _values('cmd(a # trailing\n b)', 'TEXT') == ['a', 'b']


def test_token_positions():
    tokens = list(Scanner("a()\n  cmd(x)").scan())
    cmd = tokens[3]
    assert (cmd.value, cmd.line, cmd.column) == ('cmd', 2, 3)
    assert tokens[4].start_pos == 9


def test_top_level_text_is_passed_to_parser():
    assert _types('"oops"') == ['TEXT']


@pytest.mark.parametrize("source, column", [
    ('cmd(a', 4),
    ('cmd("abc', 5),
    ('cmd(${x', 5),
    ('cmd(${f(}', 8),
    ('cmd([[abc)', 5),
])
def test_unbalanced_structure_is_incomplete(source, column):
    with pytest.raises(SpliceIncompleteParse) as exc:
        list(Scanner(source).scan())
    assert (exc.value.line, exc.value.column) == (1, column)


def test_invalid_character_in_variable_name():
    with pytest.raises(SpliceSyntaxError) as exc:
        list(Scanner('cmd(${a b})').scan())
    assert not isinstance(exc.value, SpliceIncompleteParse)
    assert exc.value.column == 8


def test_normalize_source():
    assert normalize_source('\ufeffa()\r\nb()') == 'a()\nb()'
    assert normalize_source(b'\xef\xbb\xbfcmd(x)\r\n') == 'cmd(x)\n'


def test_normalize_source_keeps_lone_carriage_return():
    assert normalize_source('cmd("a\rb")\r\ncmd(c)\r') == 'cmd("a\rb")\ncmd(c)\r'
    assert _values(normalize_source('cmd("a\rb")\r\n'), 'TEXT') == ['a\rb']
