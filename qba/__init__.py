# qba/__init__.py

from .io import read_table, validate_dataset
from .contingency import Contingency2x2, CorrectedTable, build_2x2, build_strata
from .errors import (
    QBAError,
    SchemaError,
    UndefinedAdjustment,
    DegenerateCorrection,
    NegativeCorrectedCount,
    UndefinedPooling,
    UndefinedEstimate,
    DivisionByZero,
    AnalysisCancelled,
)
from .formulas import adjust_ratio, adjust_for_confounding
from .misclassification import Classification, correct_table, correct_contingency, predictive_values
from .imputation import impute_true_outcome, impute_outcomes
from .pooling import pool_mantel_haenszel, crude_ratio
from .metrics import odds_ratio_and_ci, relative_risk_and_ci, observed_metrics
from .parameters import AnalysisConfig, BiasParameters, load_config
from .pba import SimulationResult, run_pba, simple_bias_analysis
from .sweep import sweep

__all__ = [
    "read_table",
    "validate_dataset",
    "Contingency2x2",
    "CorrectedTable",
    "build_2x2",
    "build_strata",
    "QBAError",
    "SchemaError",
    "UndefinedAdjustment",
    "DegenerateCorrection",
    "NegativeCorrectedCount",
    "UndefinedPooling",
    "UndefinedEstimate",
    "DivisionByZero",
    "AnalysisCancelled",
    "adjust_ratio",
    "adjust_for_confounding",
    "Classification",
    "correct_table",
    "correct_contingency",
    "predictive_values",
    "impute_true_outcome",
    "impute_outcomes",
    "pool_mantel_haenszel",
    "crude_ratio",
    "odds_ratio_and_ci",
    "relative_risk_and_ci",
    "observed_metrics",
    "AnalysisConfig",
    "BiasParameters",
    "load_config",
    "SimulationResult",
    "run_pba",
    "simple_bias_analysis",
    "sweep",
]
