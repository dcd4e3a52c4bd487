# qba/misclassification.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .contingency import Contingency2x2, CorrectedTable
from .errors import DegenerateCorrection, DivisionByZero, NegativeCorrectedCount

NEGATIVE_COUNT_POLICIES = ("propagate", "error")


@dataclass(frozen=True)
class Classification:
    """Outcome sensitivity/specificity by exposure group (0 = unexposed, 1 = exposed)."""
    sens0: float = 1.0
    sens1: float = 1.0
    spec0: float = 1.0
    spec1: float = 1.0


def _youden(sens: float, spec: float, group: str) -> float:
    j = sens + spec - 1.0
    if j <= 0:
        raise DegenerateCorrection(
            f"sens + spec - 1 must be > 0 for the {group} group, got {j:.6g} "
            f"(sens={sens}, spec={spec})."
        )
    return j


def correct_table(
    a: float,
    b: float,
    c: float,
    d: float,
    sens0: float,
    sens1: float,
    spec0: float,
    spec1: float,
) -> CorrectedTable:
    """
    Back-calculates expected true cell counts from observed counts.

        A = (a - (a+c)(1-spec1)) / (sens1+spec1-1)
        B = (b - (b+d)(1-spec0)) / (sens0+spec0-1)
        C = (a+c) - A
        D = (b+d) - B

    Results are not clipped: negative or non-integer cells mean the observed
    data are inconsistent with the assumed sensitivity/specificity.
    """
    j1 = _youden(sens1, spec1, "exposed")
    j0 = _youden(sens0, spec0, "unexposed")

    n1 = a + c
    n0 = b + d
    A = (a - n1 * (1.0 - spec1)) / j1
    B = (b - n0 * (1.0 - spec0)) / j0
    return CorrectedTable(A=A, B=B, C=n1 - A, D=n0 - B)


def correct_contingency(table: Contingency2x2, clf: Classification) -> CorrectedTable:
    return correct_table(
        table.a, table.b, table.c, table.d,
        sens0=clf.sens0, sens1=clf.sens1, spec0=clf.spec0, spec1=clf.spec1,
    )


def _ratio(num: float, den: float, what: str) -> float:
    if den == 0:
        raise DivisionByZero(f"Observed {what} count is zero; predictive value undefined.")
    return num / den


def predictive_values(
    corrected: CorrectedTable,
    observed: Contingency2x2,
    clf: Classification,
    *,
    negative_counts: str = "propagate",
) -> Dict[str, float]:
    """
    Exposure-specific predictive values of the observed outcome label:
      ppv_e = P(true=1 | observed=1, e) = sens_e * (true cases)_e / (observed cases)_e
      npv_e = P(true=0 | observed=0, e) = spec_e * (true non-cases)_e / (observed non-cases)_e
    """
    if negative_counts not in NEGATIVE_COUNT_POLICIES:
        raise ValueError(f"Invalid negative_counts: {negative_counts}")
    if negative_counts == "error" and corrected.has_negative:
        raise NegativeCorrectedCount(f"Corrected table has negative cells: {corrected}")

    return {
        "ppv1": _ratio(clf.sens1 * corrected.A, observed.a, "exposed case"),
        "ppv0": _ratio(clf.sens0 * corrected.B, observed.b, "unexposed case"),
        "npv1": _ratio(clf.spec1 * corrected.C, observed.c, "exposed non-case"),
        "npv0": _ratio(clf.spec0 * corrected.D, observed.d, "unexposed non-case"),
    }
