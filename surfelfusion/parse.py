"""Command-line argument lookup and locating program directories."""

from __future__ import annotations

import os
import re
import sys
from typing import Optional, Sequence

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


def _leading_int(text: str) -> int:
    """Read the integer at the start of ``text``; 0 when there is none."""
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _leading_float(text: str) -> float:
    """Read the number at the start of ``text``; 0.0 when there is none."""
    match = _FLOAT_PREFIX.match(text)
    return float(match.group(1)) if match else 0.0


_CONVERTERS = {str: str, int: _leading_int, float: _leading_float}


def find_arg(argv: Sequence[str], name: str) -> Optional[int]:
    """Return the position of ``name`` in ``argv``, skipping the program name.

    Returns ``None`` when the argument is not present.
    """
    for index, argument in enumerate(argv[1:], start=1):
        if argument == name:
            return index
    return None


def parse_arg(argv: Sequence[str], name: str, kind=str):
    """Return the value following the flag ``name``, converted to ``kind``.

    ``kind`` is ``str``, ``int`` or ``float``. Numbers are read from the start
    of the value, ignoring trailing text, and a value without a leading number
    reads as zero. Returns ``None`` when the flag is absent or is the last
    argument.
    """
    try:
        convert = _CONVERTERS[kind]
    except (KeyError, TypeError):
        raise TypeError(f"unsupported argument kind {kind!r}") from None
    index = find_arg(argv, name)
    if index is None or index + 1 >= len(argv):
        return None
    return convert(argv[index + 1])


def shader_dir(directory) -> str:
    """Return ``directory`` as a string, checking that it exists."""
    path = os.fspath(directory)
    if not os.path.exists(path):
        raise FileNotFoundError(f"shader directory not found: {path}")
    return path


def base_dir(executable=None) -> str:
    """Return the path of ``executable`` up to its last ``build`` directory.

    Without an argument the running program's path is used. A path with no
    ``build`` component is returned unchanged.
    """
    if executable is None:
        executable = os.path.realpath(sys.argv[0])
    path = os.fspath(executable)
    marker = f"{os.sep}build{os.sep}"
    cut = path.rfind(marker)
    return path if cut < 0 else path[:cut]