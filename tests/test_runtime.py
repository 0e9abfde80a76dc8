## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import sys

import pytest

from cmdsplice.runtime import Runtime, EngineConfig
from cmdsplice.scope import Scope
from cmdsplice.errors import (SpliceSyntaxError, SpliceIncompleteParse, SpliceDispatchError,
                              SpliceNameError, SpliceArityError, SpliceRecursionError)


def _runtime(**config) -> Runtime:
    return Runtime(config=EngineConfig(**config), scope=Scope(environ={}))

def _recorder(rt: Runtime, name: str = 'use') -> list:
    calls = []
    rt.register_command(name, lambda frame, args: calls.append(args))
    return calls


def test_runtime_dispatches_command_reference_result():
    rt = _runtime()
    calls = _recorder(rt, 'message')
    rt.register_command('get_name', lambda: "Alex")
    rt.run("message(${get_name()})")
    assert calls == [['Alex']]


def test_runtime_list_variable_expansion():
    rt = _runtime()
    calls = _recorder(rt)
    rt.run('set(L a b c)\nuse(${L})\nuse("${L}")')
    assert calls == [['a', 'b', 'c'], ['a;b;c']]


def test_command_names_are_case_insensitive():
    rt = _runtime()
    rt.register_command('Get_Name', lambda: "Alex")
    rt.run("SET(who ${GET_NAME()})")
    assert rt.get_variable('who') == 'Alex'


def test_python_command_results():
    rt = _runtime()
    calls = _recorder(rt)
    rt.register_command('none', lambda: None)
    rt.register_command('many', lambda: ("x", 2))
    rt.run("use(${none()} ${many()})")
    assert calls == [['x', '2']]


def test_python_command_arity_is_checked():
    rt = _runtime()
    rt.register_command('two', lambda a, b: a + b)
    with pytest.raises(SpliceArityError) as exc:
        rt.run("set(x ${two(1)})")
    assert exc.value.splice_name == 'two'


def test_varargs_command_accepts_any_count():
    rt = _runtime()
    rt.register_command('join', lambda *parts: "-".join(parts))
    rt.run("set(x ${join()})\nset(y ${join(a b c)})")
    assert rt.get_variable('x') == ''
    assert rt.get_variable('y') == 'a-b-c'


def test_unknown_command():
    rt = _runtime()
    with pytest.raises(SpliceNameError):
        rt.run("nope()")


def test_side_effects_before_error_stay_committed():
    rt = _runtime()
    with pytest.raises(SpliceNameError):
        rt.run("set(a 1)\nset(b ${nope()})\nset(c 3)")
    assert rt.get_variable('a') == '1'
    assert rt.get_variable('b') is None
    assert rt.get_variable('c') is None


def test_syntax_error_makes_no_dispatch():
    rt = _runtime()
    calls = _recorder(rt, 'cmd')
    rt.register_command('f', lambda: calls.append('f'))
    with pytest.raises(SpliceSyntaxError) as exc:
        rt.run("cmd(ok)\ncmd(${f(}")
    assert (exc.value.line, exc.value.column) == (2, 8)
    assert calls == []


def test_expand_resolves_without_dispatch():
    rt = _runtime()
    calls = _recorder(rt)
    rt.set_variable('L', ['a', 'b'])
    assert rt.expand("use(${L} \"${L}\")") == ['a', 'b', 'a;b']
    assert calls == []
    with pytest.raises(SpliceSyntaxError):
        rt.expand("use() use()")


def test_parse_is_cached_and_re_evaluation_is_idempotent():
    rt = _runtime()
    calls = _recorder(rt)
    rt.register_command('fl', lambda: ["a", "b"])
    [first] = rt.parse("use(${fl()})")
    [again] = rt.parse("use(${fl()})")
    assert first is again
    rt.evaluate(first)
    rt.evaluate(first)
    assert calls == [['a', 'b'], ['a', 'b']]


def test_list_commands_and_signature():
    rt = _runtime()
    def greet(who, greeting="hello"):
        """Say hello."""
        return f"{greeting} {who}"
    rt.register_command('greet', greet)
    meta = rt.list_commands()['greet']
    assert (meta['arity'], meta['required'], meta['frame'], meta['doc']) == (2, 1, False, "Say hello.")
    assert 'set' in rt.list_commands()
    assert rt.get_signature('SET')['frame'] is True


# Script functions ───────────────────────────────────────────────────────────────────────────

def test_function_returns_values():
    rt = _runtime()
    rt.run('function(greet who)\n  return("hello ${who}")\nendfunction()\nset(x ${greet(world)})')
    assert rt.get_variable('x') == 'hello world'


def test_function_arguments_are_bound():
    rt = _runtime()
    calls = _recorder(rt)
    rt.run("function(f a)\n  use(${ARGC} ${a} ${ARGV0} ${ARGV2} ${ARGN})\n  use(${ARGV})\nendfunction()\nf(1 2 3)")
    assert calls == [['3', '1', '1', '3', '2', '3'], ['1', '2', '3']]


def test_function_result_list_expands():
    rt = _runtime()
    calls = _recorder(rt)
    rt.run("function(rest first)\n  return(${ARGN})\nendfunction()\nuse(${rest(1 2 3)})\nuse(x${rest(1 2 3)})")
    assert calls == [['2', '3'], ['x2;3']]


def test_function_without_return_produces_nothing():
    rt = _runtime()
    calls = _recorder(rt)
    rt.run("function(quiet)\nendfunction()\nuse(a ${quiet()} b)")
    assert calls == [['a', 'b']]


def test_function_scope_is_local():
    rt = _runtime()
    rt.run("set(outer 1)\nfunction(f)\n  set(inner ${outer})\n  set(up ${inner} PARENT_SCOPE)\nendfunction()\nf()")
    assert rt.get_variable('inner') is None
    assert rt.get_variable('up') == '1'


def test_return_stops_function_body():
    rt = _runtime()
    calls = _recorder(rt)
    rt.run("function(f)\n  return(early)\n  use(late)\nendfunction()\nuse(${f()})")
    assert calls == [['early']]


def test_top_level_return_stops_script():
    rt = _runtime()
    rt.run("set(a 1)\nreturn()\nset(a 2)")
    assert rt.get_variable('a') == '1'


def test_nested_function_definitions():
    rt = _runtime()
    rt.run("function(outer)\n  function(inner)\n    return(deep)\n  endfunction()\nendfunction()\nouter()\nset(x ${inner()})")
    assert rt.get_variable('x') == 'deep'


def test_function_with_too_few_arguments():
    rt = _runtime()
    rt.run("function(pair a b)\nendfunction()")
    with pytest.raises(SpliceArityError):
        rt.run("pair(1)")


def test_unterminated_function_is_incomplete():
    rt = _runtime()
    with pytest.raises(SpliceIncompleteParse):
        rt.run("function(f)\n  set(x 1)")


def test_unterminated_function_runs_nothing():
    rt = _runtime()
    with pytest.raises(SpliceIncompleteParse) as exc:
        rt.run("set(a 1)\nfunction(f)\n  set(x 1)")
    assert (exc.value.line, exc.value.column) == (2, 1)
    assert rt.get_variable('a') is None


def test_unterminated_nested_function_is_incomplete():
    rt = _runtime()
    with pytest.raises(SpliceIncompleteParse):
        rt.parse("function(outer)\n  function(inner)\n  endfunction()\nset(a 1)")


def test_stray_endfunction():
    rt = _runtime()
    with pytest.raises(SpliceDispatchError):
        rt.run("endfunction()")


def test_define_function_from_source():
    rt = _runtime()
    rt.define_function('twice', ['v'], 'return(${v} ${v})')
    assert rt.expand("use(${twice(z)})") == ['z', 'z']


# Recursion ──────────────────────────────────────────────────────────────────────────────────

def test_direct_self_reference_hits_depth_limit():
    rt = _runtime(max_depth=50)
    with pytest.raises(SpliceRecursionError) as exc:
        rt.run("function(f)\n  return(${f()})\nendfunction()\nf()")
    assert exc.value.depth == 50
    assert rt.depth == 0


def test_indirect_self_reference_hits_depth_limit():
    rt = _runtime(max_depth=30)
    rt.define_function('ping', [], 'return(${pong()})')
    rt.define_function('pong', [], 'return(${ping()})')
    with pytest.raises(SpliceRecursionError):
        rt.run("set(x ${ping()})")


def test_python_command_self_reference():
    rt = _runtime(max_depth=40)
    rt.register_command('loop', lambda frame, args: frame.runtime.run("set(x ${loop()})"))
    with pytest.raises(SpliceRecursionError):
        rt.run("loop()")


@pytest.mark.parametrize("max_depth", [200, 500, 1000])
def test_configured_depth_is_reached_before_native_stack(max_depth):
    rt = _runtime(max_depth=max_depth)
    limit = sys.getrecursionlimit()
    with pytest.raises(SpliceRecursionError) as exc:
        rt.run("function(f)\n  return(${f()})\nendfunction()\nf()")
    assert exc.value.depth == max_depth
    assert "Maximum nesting depth" in str(exc.value)
    assert sys.getrecursionlimit() == limit


def test_runtime_is_usable_after_recursion_error():
    rt = _runtime()
    with pytest.raises(RecursionError) as exc:
        rt.run("function(f)\n  return(${f()})\nendfunction()\nf()")
    assert isinstance(exc.value, SpliceRecursionError)
    rt.run("set(after ok)")
    assert rt.get_variable('after') == 'ok'
    assert rt.depth == 0


# Parse cache and nested runs ───────────────────────────────────────────────────────────────

def test_parse_cache_is_bounded():
    rt = Runtime(config=EngineConfig(parse_cache_size=2), scope=Scope(environ={}))
    first = rt.parse("a()")
    assert rt.parse("a()") is first
    rt.parse("b()")
    rt.parse("c()")
    assert rt.parse("a()") is not first


def test_nested_run_keeps_outer_stats():
    rt = _runtime()
    rt.register_command('inner', lambda frame, args: frame.runtime.run("set(y 1)"))
    stats = {}
    rt.run("inner()\nset(z 2)", stats=stats)
    assert stats['calls'] == 3
    assert rt.verbosity == 0 and rt.stats is None
