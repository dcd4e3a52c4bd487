import numpy as np
import pytest

from qba.distributions import Beta, Fixed, Trapezoidal, Triangular, Uniform, as_distribution, draw_value
from qba.parameters import AnalysisConfig, BiasParameters, load_config


def test_as_distribution_forms():
    assert as_distribution(0.8) == Fixed(0.8)
    assert as_distribution({"dist": "triangular", "min": 0.7, "mode": 0.8, "max": 0.9}) == Triangular(0.7, 0.8, 0.9)
    assert as_distribution({"dist": "uniform", "min": 0.1, "max": 0.2}) == Uniform(0.1, 0.2)
    with pytest.raises(ValueError):
        as_distribution({"dist": "lognormal", "mu": 0})
    with pytest.raises(ValueError):
        as_distribution({"dist": "triangular", "min": 0.9, "mode": 0.8, "max": 0.7})
    with pytest.raises(ValueError):
        as_distribution("0.8")


def test_samples_within_support():
    rng = np.random.default_rng(0)
    tri = Triangular(0.7, 0.8, 0.9)
    trap = Trapezoidal(0.5, 0.6, 0.7, 0.9)
    xs = np.array([tri.sample(rng) for _ in range(2000)])
    ts = np.array([trap.sample(rng) for _ in range(2000)])
    assert xs.min() >= 0.7 and xs.max() <= 0.9
    assert ts.min() >= 0.5 and ts.max() <= 0.9
    # symmetric triangular -> mean at mode
    assert xs.mean() == pytest.approx(0.8, abs=0.01)
    bs = np.array([Beta(80, 20).sample(rng) for _ in range(2000)])
    assert bs.mean() == pytest.approx(0.8, abs=0.01)


def test_draw_value_without_rng_uses_center():
    assert draw_value(Triangular(0.7, 0.75, 0.9), None) == 0.75
    assert draw_value(Fixed(2.0), None) == 2.0
    assert draw_value(Uniform(1.0, 3.0), None) == 2.0


def test_bias_parameters_from_dict():
    p = BiasParameters.from_dict(
        {
            "selection": {"S00": 0.8, "S01": 0.6, "S10": 0.8, "S11": 0.5},
            "misclassification": {
                "strata": {"1": {"sens1": {"dist": "triangular", "min": 0.7, "mode": 0.8, "max": 0.9}, "spec1": 0.99}}
            },
        }
    )
    assert p.mechanisms == ["selection", "misclassification"]
    assert p.confounding is None

    clf = p.misclassification.draw(None, [(0,), (1,)])
    assert clf[(0,)].sens1 == 1.0
    assert clf[(1,)].sens1 == 0.8
    assert clf[(1,)].spec1 == 0.99


def test_bias_parameters_flat_misclassification_is_default():
    p = BiasParameters.from_dict({"misclassification": {"sens1": 0.9, "spec1": 0.95}})
    clf = p.misclassification.draw(None, [()])
    assert clf[()].sens1 == 0.9
    assert clf[()].sens0 == 1.0


def test_bias_parameters_rejects_unknown():
    with pytest.raises(ValueError):
        BiasParameters.from_dict({"measurement": {}})
    with pytest.raises(ValueError):
        BiasParameters.from_dict({"selection": {"S00": 0.8, "S01": 0.6, "S10": 0.8}})
    with pytest.raises(ValueError):
        BiasParameters.from_dict({"misclassification": {"default": {"ppv": 0.9}}})


def test_misclassification_draw_order_independent_of_keys():
    p = BiasParameters.from_dict(
        {
            "misclassification": {
                "default": {"sens1": {"dist": "uniform", "min": 0.7, "max": 0.9}},
                "strata": {"1": {"sens1": {"dist": "uniform", "min": 0.5, "max": 0.6}}},
            }
        }
    )
    a = p.misclassification.draw(np.random.default_rng(4), [(0,), (1,)])
    b = p.misclassification.draw(np.random.default_rng(4), [(1,)])
    assert a[(1,)] == b[(1,)]


def test_analysis_config_validation():
    with pytest.raises(ValueError):
        AnalysisConfig(n_trials=0)
    with pytest.raises(ValueError):
        AnalysisConfig(policy="sometimes")
    with pytest.raises(ValueError):
        AnalysisConfig(percentiles=(97.5, 2.5))
    cfg = AnalysisConfig().with_overrides(n_trials=50, seed=None)
    assert cfg.n_trials == 50
    assert cfg.seed == 42


def test_load_config(tmp_path, write_json):
    path = write_json(
        tmp_path / "cfg.json",
        {
            "bias_parameters": {"confounding": {"p_u_given_z1": 0.4, "p_u_given_z0": 0.2, "rr_uy": 2.0}},
            "analysis": {"n_trials": 200, "policy": "lenient", "covariates": ["x"]},
        },
    )
    params, cfg = load_config(str(path))
    assert params.mechanisms == ["confounding"]
    assert cfg.n_trials == 200
    assert cfg.policy == "lenient"
    assert cfg.covariates == ("x",)


def test_load_config_unknown_option(tmp_path, write_json):
    path = write_json(tmp_path / "cfg.json", {"analysis": {"iterations": 10}})
    with pytest.raises(ValueError):
        load_config(str(path))
