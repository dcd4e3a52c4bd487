"""
Closed-form bias adjustments of a summary ratio.

Both adjustments are rare-outcome approximations (odds ratio ~ risk ratio);
whether that holds cannot be checked from the inputs, so it is on the caller.
"""
from __future__ import annotations

from .errors import UndefinedAdjustment


def selection_bias_factor(S00: float, S01: float, S10: float, S11: float) -> float:
    """
    Multiplicative correction for selection, with Sxy = P(selected | exposure=x, outcome=y).
    """
    denom = S00 * S11
    if denom == 0:
        raise UndefinedAdjustment(
            f"Selection probabilities give a zero denominator (S00={S00}, S11={S11})."
        )
    return (S01 * S10) / denom


def adjust_ratio(observed_ratio: float, S00: float, S01: float, S10: float, S11: float) -> float:
    """Selection-bias adjusted ratio: observed * (S01*S10) / (S00*S11)."""
    return observed_ratio * selection_bias_factor(S00, S01, S10, S11)


def confounding_bias_factor(p_u_given_z1: float, p_u_given_z0: float, rr_uy: float) -> float:
    denom = 1.0 + p_u_given_z1 * (rr_uy - 1.0)
    if denom == 0:
        raise UndefinedAdjustment(
            f"Confounder parameters give a zero denominator "
            f"(P(U=1|Z=1)={p_u_given_z1}, RR_UY={rr_uy})."
        )
    return (1.0 + p_u_given_z0 * (rr_uy - 1.0)) / denom


def adjust_for_confounding(
    ratio: float,
    p_u_given_z1: float,
    p_u_given_z0: float,
    rr_uy: float,
) -> float:
    """
    Ratio adjusted for a binary unmeasured confounder U with prevalence
    P(U=1|Z=z) among exposure group z and U-outcome risk ratio RR_UY.
    """
    return ratio * confounding_bias_factor(p_u_given_z1, p_u_given_z0, rr_uy)
