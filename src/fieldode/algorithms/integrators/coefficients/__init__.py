"""Butcher tableaus of the fixed-step explicit Runge-Kutta family.

Every module exposes ``A`` (strictly lower triangular stage couplings),
``B`` (combination weights) and ``C`` (stage nodes) as tuples of exact
:class:`fractions.Fraction` so they can be converted into any field without
rounding.
"""

from fractions import Fraction
from typing import Sequence


def validate_tableau(A: Sequence[Sequence[Fraction]], B: Sequence[Fraction], C: Sequence[Fraction]) -> None:
    """Check the structural and consistency conditions of an explicit tableau.

    Parameters
    ----------
    A : sequence of sequences
        Stage coupling matrix of shape (s, s).
    B : sequence
        Weights of length s.
    C : sequence
        Nodes of length s.

    Raises
    ------
    ValueError
        If the shapes disagree, ``A`` is not strictly lower triangular,
        ``C[0] != 0``, ``sum(B) != 1`` or a node differs from its row sum.
    """
    s = len(B)
    if s == 0:
        raise ValueError("Tableau must have at least one stage")
    if len(C) != s or len(A) != s or any(len(row) != s for row in A):
        raise ValueError(f"Tableau shapes disagree: A {len(A)}x?, B {len(B)}, C {len(C)}")
    for i, row in enumerate(A):
        if any(row[j] != 0 for j in range(i, s)):
            raise ValueError(f"Tableau row {i} is not strictly lower triangular")
    if C[0] != 0:
        raise ValueError("First stage node must be 0 for an explicit method")
    if sum(B) != 1:
        raise ValueError(f"Weights must sum to 1, got {sum(B)}")
    for i, row in enumerate(A):
        if sum(row) != C[i]:
            raise ValueError(f"Node C[{i}] = {C[i]} differs from row sum {sum(row)}")
