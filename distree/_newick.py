"""
_newick.py
==========
Iterative NEWICK reader producing a nested ``NewickNode`` structure.

Grammar
-------
  tree     := subtree [';']
  subtree  := '(' subtree (',' subtree)* ')' [label] [':' length]
            | [label] [':' length]
  label    := any run of characters other than ':', ',', '(', ')', ';'
              and whitespace
  length   := run of [0-9.eE+-] parsed as a float

Whitespace between tokens is skipped.  Only the first tree of the input is
read; anything after its terminating ';' is ignored with a warning.

The reader never recurses: open parentheses are kept on an explicit list
stack, so arbitrarily deep (caterpillar) trees parse without hitting the
interpreter recursion limit.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from distree._exceptions import NewickParseError

logger = logging.getLogger(__name__)

_LABEL_STOP = ":,();"
_LENGTH_CHARS = "0123456789.eE+-"


@dataclass
class NewickNode:
    """One vertex of a parsed tree, before flattening into the node arena."""

    name: Optional[str] = None
    length: float = 0.0
    children: List["NewickNode"] = field(default_factory=list)

    def is_leaf(self) -> bool:
        return not self.children


def _skip_ws(s: str, i: int) -> int:
    n = len(s)
    while i < n and s[i].isspace():
        i += 1
    return i


def _read_annotation(s: str, i: int, node: NewickNode) -> int:
    """
    Read the optional ``label`` and ``:length`` that follow a leaf position
    or a closing parenthesis, store them on *node*, and return the index of
    the first unconsumed character.
    """
    n = len(s)
    i = _skip_ws(s, i)

    j = i
    while j < n and s[j] not in _LABEL_STOP and not s[j].isspace():
        j += 1
    if j > i:
        node.name = s[i:j]
    i = _skip_ws(s, j)

    if i < n and s[i] == ":":
        i = _skip_ws(s, i + 1)
        j = i
        while j < n and s[j] in _LENGTH_CHARS:
            j += 1
        literal = s[i:j]
        if not literal:
            raise NewickParseError("Missing branch length after ':'", i)
        try:
            node.length = float(literal)
        except ValueError:
            raise NewickParseError(
                f"Failed to parse branch length '{literal}'", i
            ) from None
        i = j

    return i


def parse_newick(newick_string: str) -> NewickNode:
    """
    Parse *newick_string* and return the root ``NewickNode``.

    Parameters
    ----------
    newick_string : str
        A NEWICK tree; the trailing ';' is optional.

    Returns
    -------
    NewickNode
        Root of the nested structure.  Children keep their textual order.

    Raises
    ------
    NewickParseError
        Unbalanced parentheses, an unexpected character, or an unparsable
        branch length.  No partial tree is returned.
    """
    s = newick_string.strip()
    n = len(s)

    root = NewickNode()
    node = root
    open_nodes = []  # internal nodes whose ')' has not been seen yet
    i = 0

    while True:
        # Descend: every '(' opens a new internal node with a first child.
        i = _skip_ws(s, i)
        while i < n and s[i] == "(":
            open_nodes.append(node)
            child = NewickNode()
            node.children.append(child)
            node = child
            i = _skip_ws(s, i + 1)

        i = _read_annotation(s, i, node)

        # Climb: close finished groups until a sibling starts or input ends.
        sibling_started = False
        while open_nodes:
            i = _skip_ws(s, i)
            if i >= n:
                raise NewickParseError(
                    f"Unexpected end of input: {len(open_nodes)} unclosed '('", i
                )
            c = s[i]
            if c == ",":
                node = NewickNode()
                open_nodes[-1].children.append(node)
                i += 1
                sibling_started = True
                break
            if c == ")":
                node = open_nodes.pop()
                i = _read_annotation(s, i + 1, node)
                continue
            if c == ";":
                raise NewickParseError(
                    f"Unexpected ';': {len(open_nodes)} unclosed '('", i
                )
            raise NewickParseError(f"Expected ',' or ')', found '{c}'", i)

        if not sibling_started:
            break

    i = _skip_ws(s, i)
    if i < n and s[i] == ";":
        i = _skip_ws(s, i + 1)
        if i < n:
            logger.warning(
                "Ignoring %d characters after the first tree; "
                "only single-tree input is supported",
                n - i,
            )
    elif i < n:
        if s[i] == ")":
            raise NewickParseError("Unbalanced ')'", i)
        raise NewickParseError(f"Unexpected character '{s[i]}'", i)

    return root
