## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Lists are plain strings with elements separated by `;`.
#

SEPARATOR = ';'


def join_list(values) -> str:
    return SEPARATOR.join(values)


def expand_list(value: str, keep_empty: bool = False) -> list[str]:
    """Split a list string into its elements.  A `;` preceded by a backslash is kept as
    literal `;`, and separators nested inside square brackets don't split.  Empty elements
    are dropped unless `keep_empty` is set, so an empty string expands to no elements.
    """
    if not value:
        return [''] if keep_empty else []

    result, current, nesting, i = [], [], 0, 0
    while i < len(value):
        ch = value[i]
        if ch == '\\' and i + 1 < len(value) and value[i+1] == SEPARATOR:
            current.append(SEPARATOR)
            i += 2
            continue
        if ch == '[':
            nesting += 1
        elif ch == ']' and nesting > 0:
            nesting -= 1
        elif ch == SEPARATOR and nesting == 0:
            if current or keep_empty:
                result.append(''.join(current))
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1

    if current or keep_empty:
        result.append(''.join(current))
    return result


def flatten(values: list[str]) -> str:
    """Collapse the values produced by one sub-expression into a single string."""
    return values[0] if len(values) == 1 else join_list(values)
