"""
_exceptions.py
==============
Exception types raised by distree.

Input problems subclass ``ValueError`` so callers that already guard tree
construction with ``except ValueError`` keep working.  Structural defects
subclass ``RuntimeError``: they mean the node arena was corrupted and are
never caught inside the package.
"""


class NewickParseError(ValueError):
    """
    Malformed NEWICK input.

    Attributes
    ----------
    position : int or None
        Character offset (into the stripped input) where parsing failed.
    """

    def __init__(self, message: str, position=None) -> None:
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class EmptyTreeError(ValueError):
    """A syntactically valid tree with no named leaves."""


class TreeStructureError(RuntimeError):
    """An internal invariant of the node arena does not hold."""
