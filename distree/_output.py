"""
_output.py
==========
Tab-separated serialisation of distance-matrix rows.

Layout
------
  <TAB>label_1<TAB>label_2 ... label_n
  label_1<TAB>d_11<TAB>d_12 ... d_1n
  ...

Values use the shortest positional representation that round-trips, never
scientific notation, with integral values written without a fractional
part: 3.0 -> '3', 0.25 -> '0.25', 1e-07 -> '0.0000001'.
"""

import math
import os
import tempfile
from contextlib import contextmanager
from typing import IO, Iterable, Sequence, Tuple

import numpy as np


def format_value(value: float) -> str:
    """
    Format one matrix cell in positional notation with the fewest digits
    that round-trip; integral values get no fractional part.

    Examples
    --------
    >>> format_value(3.0)
    '3'
    >>> format_value(0.1)
    '0.1'
    >>> format_value(1e-07)
    '0.0000001'
    >>> format_value(-0.0)
    '0'
    """
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == 0.0:
        return "0"
    return np.format_float_positional(value, unique=True, trim="-")


def write_header(handle: IO[str], labels: Sequence[str]) -> None:
    handle.write("\t" + "\t".join(labels) + "\n")


def write_row(handle: IO[str], label: str, row: np.ndarray) -> None:
    handle.write(label)
    for value in row:
        handle.write("\t")
        handle.write(format_value(value))
    handle.write("\n")


def write_tsv(
    handle: IO[str],
    labels: Sequence[str],
    rows: Iterable[Tuple[str, np.ndarray]],
) -> int:
    """
    Write the header and then each ``(label, row)`` as it arrives.

    Returns
    -------
    int
        Number of rows written.
    """
    write_header(handle, labels)
    count = 0
    for label, row in rows:
        write_row(handle, label, row)
        count += 1
    return count


@contextmanager
def atomic_output(path: str):
    """
    Open a text handle whose content replaces *path* only on success.

    The data goes to a temporary file in the same directory, which is moved
    over *path* when the block exits normally and removed otherwise.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(
        prefix=".distree-", suffix=".tmp", dir=directory
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            yield handle
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
