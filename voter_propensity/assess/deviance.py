from dataclasses import dataclass, asdict
from scipy import stats

ALPHA = 0.05

@dataclass(frozen=True)
class DevianceTest:
    statistic: float
    df: int
    p_value: float
    alpha: float

    @property
    def reject(self):
        return self.p_value < self.alpha

    def as_row(self):
        return {**asdict(self), "reject": self.reject}

def drop_in_deviance_test(reduced, full, alpha=ALPHA):
    """Likelihood-ratio test of ``reduced`` nested in ``full``.

    Both fits need ``deviance``, ``nobs``, ``terms`` and ``n_params``. Under the
    reduced model the deviance drop is asymptotically chi-squared with df equal
    to the number of extra parameters.
    """
    if reduced.nobs != full.nobs:
        raise ValueError(f"Models were fit on different data: {reduced.nobs} vs {full.nobs} observations")
    dropped = [t for t in reduced.terms if t not in set(full.terms)]
    if dropped:
        raise ValueError(f"Models are not nested; full model lacks {dropped}")
    df = full.n_params - reduced.n_params
    # round-off can leave a tiny negative drop when the extra block is redundant
    statistic = max(float(reduced.deviance - full.deviance), 0.0)
    p_value = 1.0 if df == 0 else float(stats.chi2.sf(statistic, df))
    return DevianceTest(statistic=statistic, df=int(df), p_value=p_value, alpha=float(alpha))
