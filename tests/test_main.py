import json
import pandas as pd
import pytest
from voter_propensity.main import main, run_report
from voter_propensity.stages.sample import make_demo_survey
from voter_propensity.models.train import UnreliableFitError

def test_demo_report_end_to_end(tmp_path):
    main(["--demo", "--outdir", str(tmp_path), "--no-plots", "--cutoff", "0.6"])
    for name in ["voter_rates.csv", "associations.csv", "coefficients_reduced.csv", "coefficients_full.csv",
                 "odds_ratios_full.csv", "deviance_test.csv", "roc_points.csv", "confusion_matrix.csv",
                 "threshold_sweep.csv", "proportions_party.csv", "summary.json"]:
        assert (tmp_path/name).exists(), name
    summary = json.loads((tmp_path/"summary.json").read_text())
    assert summary["deviance_test"]["df"] == 3
    assert summary["encoding"]["party"][0] == "Democrat"
    assert 0.5 < summary["auc"] <= 1.0
    assert summary["confusion"]["cutoff"] == 0.6
    assert summary["confusion"]["TP"] + summary["confusion"]["FN"] == round(summary["n"] * summary["possible_voter_rate"])
    assert not list(tmp_path.glob("fig_*"))

def test_report_from_file_with_figures(tmp_path):
    data = tmp_path/"survey.tsv"
    make_demo_survey(n=400, seed=3).to_csv(data, sep="\t", index=False)
    out = tmp_path/"out"
    main(["--data", str(data), "--sep", "\t", "--outdir", str(out), "--format", "svg"])
    assert (out/"fig_roc.svg").exists() and (out/"fig_proportions_age_group.svg").exists()
    coefs = pd.read_csv(out/"coefficients_full.csv")
    assert coefs["term"].iloc[0] == "Intercept"

def test_missing_input_aborts_run(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(["--data", str(tmp_path/"absent.csv"), "--outdir", str(tmp_path/"out")])
    assert not (tmp_path/"out").exists()

def test_run_report_returns_summary(tmp_path):
    summary = run_report(make_demo_survey(n=500, seed=11), tmp_path, cutoff=0.5, alpha=0.01, do_plots=False)
    assert summary["deviance_test"]["alpha"] == 0.01
    assert summary["full"]["n_params"] == summary["reduced"]["n_params"] + 3

def test_failed_fit_leaves_no_report(tmp_path):
    raw = make_demo_survey(n=300, seed=5)
    # gender mirrors the college indicator, so the design matrix loses a rank
    raw["gender"] = (raw["educ"] == "College").map({True: "Male", False: "Female"})
    out = tmp_path/"out"
    with pytest.raises(UnreliableFitError, match="rank deficient"):
        run_report(raw, out, do_plots=False)
    assert not out.exists()
