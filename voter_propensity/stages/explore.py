import math, numpy as np, pandas as pd, matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from scipy.stats import chi2_contingency
from voter_propensity.features.pipeline import TARGET

GROUPINGS = ["party", "age_group", "race", "gender", "income_cat", "educ"]

def proportion_table(df, by, outcome=TARGET):
    """Long table: one row per (by level, outcome level) with count and share within the by level."""
    ct = pd.crosstab(df[by], df[outcome])
    out = (ct.reset_index().melt(id_vars=by, var_name=outcome, value_name="count")
             .sort_values([by, outcome]).reset_index(drop=True))
    out["count"] = out["count"].astype(int)
    out["proportion"] = out["count"] / out.groupby(by)["count"].transform("sum")
    return out

def voter_rate_table(df, by):
    return (df.groupby(by)[TARGET].agg(n="size", voters="sum", share="mean")
              .reset_index().rename(columns={by: "level"}).assign(grouping=by)
              [["grouping", "level", "n", "voters", "share"]])

def association_table(df, groupings=GROUPINGS, outcome=TARGET):
    rows = []
    for c in groupings:
        ct = pd.crosstab(df[c], df[outcome])
        if ct.shape[0] > 1 and ct.shape[1] > 1:
            chi2, p, dof, _ = chi2_contingency(ct, correction=False)
            n = ct.values.sum(); k = min(ct.shape) - 1
            rows.append((c, float(chi2), int(dof), float(p), math.sqrt(chi2 / (n * k)), int(ct.shape[0])))
    return (pd.DataFrame(rows, columns=["grouping", "chi2", "dof", "p_value", "cramers_v", "n_levels"])
              .sort_values("cramers_v", ascending=False).reset_index(drop=True))

def plot_proportions(table, by, outcome, path, title=None):
    wide = table.pivot(index=by, columns=outcome, values="proportion").fillna(0.0)
    fig, ax = plt.subplots(figsize=(7, 0.5 * len(wide) + 2))
    left = np.zeros(len(wide))
    for col in wide.columns:
        ax.barh(wide.index.astype(str), wide[col].to_numpy(), left=left, label=str(col))
        left += wide[col].to_numpy()
    ax.set_xlim(0, 1); ax.set_xlabel("Proportion"); ax.set_ylabel(by)
    ax.set_title(title or f"{outcome} by {by}")
    ax.legend(title=outcome, bbox_to_anchor=(1.02, 1), loc="upper left")
    fig.tight_layout(); fig.savefig(path); plt.close(fig)
