## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from cmdsplice import api


def test_api_exposes_default_runtime():
    api.register_command('api_answer', lambda: "42")
    api.run("set(api_result ${api_answer()})")
    assert api.get_variable('api_result') == '42'


def test_api_reexports_types_and_errors():
    assert issubclass(api.SpliceRecursionError, RecursionError)
    assert isinstance(api.Runtime(), api.Runtime)
    [program] = api.parse("cmd(x)")
    assert isinstance(program, api.Program)
    assert program.instructions[-1].op == api.Instruction.CALL
