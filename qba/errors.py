# qba/errors.py
from __future__ import annotations


class QBAError(Exception):
    """Base class for every error raised by the bias-analysis engine."""


class SchemaError(QBAError):
    """Input dataset is missing required columns or has non-binary values."""


class UndefinedAdjustment(QBAError):
    """A closed-form adjustment would divide by zero."""


class DegenerateCorrection(QBAError):
    """Sensitivity/specificity carry no information to separate true from false cases."""


class NegativeCorrectedCount(DegenerateCorrection):
    """A corrected cell is negative and the caller asked for that to be an error."""


class UndefinedPooling(QBAError):
    """Mantel-Haenszel denominator is zero across every stratum."""


class DivisionByZero(QBAError, ZeroDivisionError):
    """An observed cell needed as a denominator is empty."""


class UndefinedEstimate(QBAError):
    """A record-level model fit has no identifiable exposure effect."""


class AnalysisCancelled(QBAError):
    """A probabilistic bias analysis was cancelled between trials."""


# Errors a single PBA trial may raise because of its drawn parameters or resample.
TRIAL_ERRORS = (
    UndefinedAdjustment,
    DegenerateCorrection,
    UndefinedPooling,
    UndefinedEstimate,
    DivisionByZero,
)
