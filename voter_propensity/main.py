#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Voter Propensity Report
=======================
- Recodes the non-voter survey: party, possible_voter, centred age, age group
- Proportion tables + stacked bar charts per demographic grouping
- Reduced vs full (with party) logistic regression, drop-in-deviance test
- ROC / AUC and confusion matrix at a fixed cutoff for the full model
- Tables (CSV), figures and summary.json written to --outdir

USAGE (basic):
  voter-propensity --data nonvoters_data.csv

USAGE (synthetic data, no figures):
  voter-propensity --demo --outdir results --no-plots
"""

import argparse, json
from pathlib import Path
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from voter_propensity.stages.sample import load_survey, make_demo_survey, CATEGORY_COL
from voter_propensity.features.pipeline import TARGET, SurveyRecoder
from voter_propensity.stages.explore import GROUPINGS, proportion_table, voter_rate_table, association_table, plot_proportions
from voter_propensity.models.train import fit_nested, odds_ratios
from voter_propensity.assess.deviance import ALPHA, drop_in_deviance_test
from voter_propensity.assess.assess import DEFAULT_CUTOFF, evaluate, threshold_sweep

def ensure_dir(p: Path):
    p.mkdir(parents=True, exist_ok=True)

def plot_roc(points, auc_value, path: Path):
    plt.figure(); plt.plot(points["fpr"], points["tpr"], label=f'ROC (AUC={auc_value:.3f})'); plt.plot([0,1],[0,1],'--')
    plt.title('ROC (full model)'); plt.xlabel('FPR'); plt.ylabel('TPR'); plt.legend()
    plt.tight_layout(); plt.savefig(path); plt.close()

def explore(df):
    print("\n[Step 3] Descriptive proportions")
    rates = pd.concat([voter_rate_table(df, g) for g in GROUPINGS], ignore_index=True)
    proportions = {g: proportion_table(df, g, CATEGORY_COL) for g in GROUPINGS}
    assoc = association_table(df, GROUPINGS)
    print(assoc[["grouping","chi2","p_value","cramers_v"]].to_string(index=False))
    return rates, proportions, assoc

def fit_and_test(df, alpha=ALPHA):
    print("\n[Step 4] Logistic regression (reduced vs full)")
    reduced, full = fit_nested(df)
    for name, m in (("reduced", reduced), ("full", full)):
        print(f"{name}: deviance={m.deviance:.2f} AIC={m.aic:.2f} params={m.n_params}")
    print(full.coef_table().round(4).to_string(index=False))

    print("\n[Step 5] Drop-in-deviance test for party")
    test = drop_in_deviance_test(reduced, full, alpha=alpha)
    verdict = "keep party" if test.reject else "party not needed"
    print(f"G={test.statistic:.3f} df={test.df} p={test.p_value:.4g} -> {verdict} (alpha={alpha})")
    return reduced, full, test

def assess(df, full, cutoff):
    print("\n[Step 6] ROC / AUC / confusion matrix")
    result = evaluate(df[TARGET].to_numpy(), full.fitted, cutoff)
    sweep = threshold_sweep(df[TARGET].to_numpy(), full.fitted)
    cm = result.confusion
    print(f"AUC={result.auc:.4f} | cutoff={cutoff} TP={cm.tp} FN={cm.fn} FP={cm.fp} TN={cm.tn} "
          f"TPR={cm.tpr:.4f} FPR={cm.fpr:.4f}")
    return result, sweep

def write_report(outdir: Path, summary, rates, proportions, assoc, reduced, full, test, result, sweep,
                 do_plots: bool, fig_format="png"):
    ensure_dir(outdir)
    rates.to_csv(outdir/"voter_rates.csv", index=False)
    for g, table in proportions.items():
        table.to_csv(outdir/f"proportions_{g}.csv", index=False)
        if do_plots:
            plot_proportions(table, g, CATEGORY_COL, outdir/f"fig_proportions_{g}.{fig_format}")
    assoc.to_csv(outdir/"associations.csv", index=False)
    for name, m in (("reduced", reduced), ("full", full)):
        m.coef_table().to_csv(outdir/f"coefficients_{name}.csv", index=False)
    odds_ratios(full.coef_table()).to_csv(outdir/"odds_ratios_full.csv", index=False)
    pd.DataFrame([test.as_row()]).to_csv(outdir/"deviance_test.csv", index=False)
    result.roc.to_csv(outdir/"roc_points.csv", index=False)
    result.confusion.as_frame().to_csv(outdir/"confusion_matrix.csv")
    sweep.to_csv(outdir/"threshold_sweep.csv", index=False)
    if do_plots:
        plot_roc(result.roc, result.auc, outdir/f"fig_roc.{fig_format}")
    (outdir/"summary.json").write_text(json.dumps(summary, indent=2))

def run_report(raw, outdir: Path, cutoff=DEFAULT_CUTOFF, alpha=ALPHA, do_plots=True, fig_format="png"):
    """Runs every step in memory first; outdir is only written once all of them succeed."""
    print("\n[Step 2] Recode")
    recoder = SurveyRecoder().fit(raw)
    df = recoder.transform(raw)
    print(f"Mean age={recoder.mean_age_:.2f} | possible voters={df[TARGET].mean():.1%} of {len(df)}")

    rates, proportions, assoc = explore(df)
    reduced, full, test = fit_and_test(df, alpha)
    result, sweep = assess(df, full, cutoff)

    summary = {
        "n": int(len(df)),
        "mean_age": recoder.mean_age_,
        "possible_voter_rate": float(df[TARGET].mean()),
        "reduced": {"deviance": reduced.deviance, "aic": reduced.aic, "n_params": reduced.n_params},
        "full": {"deviance": full.deviance, "aic": full.aic, "n_params": full.n_params,
                 "coefficients": dict(zip(full.terms, map(float, full.params)))},
        "deviance_test": test.as_row(),
        "auc": result.auc,
        "confusion": result.confusion.as_row(),
        "encoding": {k: list(v) for k, v in full.encoding.items()},
    }
    write_report(Path(outdir), summary, rates, proportions, assoc, reduced, full, test, result, sweep,
                 do_plots, fig_format)
    return summary


def main(argv=None):
    parser = argparse.ArgumentParser(description="Voter propensity report (logistic regression, deviance test, ROC)")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--data", type=str, help="Path to the survey file (delimited text)")
    src.add_argument("--demo", action="store_true", help="Use a synthetic survey instead of a file")
    parser.add_argument("--sep", type=str, default=",", help="Field delimiter of --data")
    parser.add_argument("--outdir", type=str, default="outputs", help="Directory to write tables & figures")
    parser.add_argument("--cutoff", type=float, default=DEFAULT_CUTOFF, help="Probability cutoff for the confusion matrix")
    parser.add_argument("--alpha", type=float, default=ALPHA, help="Significance level of the deviance test")
    parser.add_argument("--format", dest="fig_format", choices=["png","pdf","svg"], default="png", help="Figure format")
    parser.add_argument("--no-plots", action="store_true", help="Disable plotting (faster)")
    args = parser.parse_args(argv)

    print("[Step 1] Load survey")
    raw = make_demo_survey() if args.demo else load_survey(args.data, sep=args.sep)
    print(f"{len(raw)} respondents, {raw.shape[1]} columns")

    outdir = Path(args.outdir)
    run_report(raw, outdir, cutoff=args.cutoff, alpha=args.alpha, do_plots=(not args.no_plots), fig_format=args.fig_format)
    print("\nDone. Inspect outputs at:", outdir.resolve())

if __name__ == "__main__":
    main()
