from __future__ import annotations

from typing import Iterable, Union

from .contingency import Contingency2x2, CorrectedTable
from .errors import UndefinedPooling

Table = Union[CorrectedTable, Contingency2x2]


def _cells(t: Table) -> tuple[float, float, float, float]:
    if isinstance(t, Contingency2x2):
        return float(t.a), float(t.b), float(t.c), float(t.d)
    return t.A, t.B, t.C, t.D


def crude_ratio(table: Table) -> float:
    """AD/BC for one table."""
    A, B, C, D = _cells(table)
    if B * C == 0:
        raise UndefinedPooling(f"Odds ratio undefined: B*C == 0 for {table}")
    return (A * D) / (B * C)


def pool_mantel_haenszel(strata: Iterable[Table]) -> float:
    """
    Mantel-Haenszel pooled odds ratio:

        sum_k (A_k D_k / N_k) / sum_k (B_k C_k / N_k)

    Strata with N_k == 0 carry no information and are skipped.
    """
    num = 0.0
    den = 0.0
    for t in strata:
        A, B, C, D = _cells(t)
        n = A + B + C + D
        if n == 0:
            continue
        num += A * D / n
        den += B * C / n

    if den == 0:
        raise UndefinedPooling("Mantel-Haenszel denominator is zero across all strata.")
    return num / den
