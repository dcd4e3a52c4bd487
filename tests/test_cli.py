import json

import pytest

from qba.cli import main


@pytest.fixture
def inputs(tmp_path, write_json, make_table_frame):
    data = tmp_path / "data.csv"
    make_table_frame(100, 50, 900, 950).to_csv(data, index=False)
    cfg = write_json(
        tmp_path / "cfg.json",
        {
            "bias_parameters": {
                "selection": {
                    "S00": 0.8,
                    "S01": {"dist": "uniform", "min": 0.55, "max": 0.65},
                    "S10": 0.8,
                    "S11": 0.5,
                }
            },
            "analysis": {"n_trials": 50, "seed": 9},
        },
    )
    return str(data), str(cfg)


def test_cli_simple(inputs, capsys):
    data, cfg = inputs
    main(["--data", data, "--config", cfg, "--mode", "simple"])
    out = json.loads(capsys.readouterr().out)

    assert out["inputs"]["mechanisms"] == ["selection"]
    assert out["observed"]["odds_ratio"] == pytest.approx(100 * 950 / (50 * 900))
    assert out["adjusted"]["ratio"] == pytest.approx(out["observed"]["odds_ratio"] * 1.2)


def test_cli_pba(inputs, capsys):
    data, cfg = inputs
    main(["--data", data, "--config", cfg, "--n-trials", "30", "--include-estimates"])
    out = json.loads(capsys.readouterr().out)

    adj = out["adjusted"]
    assert adj["n_trials"] == 30
    assert adj["n_trials_used"] == 30
    assert len(adj["estimates"]) == 30
    assert adj["ci_low"] <= adj["point_estimate"] <= adj["ci_high"]
    assert out["inputs"]["analysis"]["seed"] == 9
