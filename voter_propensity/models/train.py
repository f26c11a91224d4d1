import warnings
from dataclasses import dataclass, field
import numpy as np, pandas as pd
import statsmodels.api as sm
from scipy import stats
from scipy.special import expit
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationError, PerfectSeparationWarning
from voter_propensity.features.pipeline import TARGET, DesignEncoder, build_encoding

REDUCED_PREDICTORS = ("mean_cent_age", "race", "gender", "income_cat", "educ")
FULL_PREDICTORS = REDUCED_PREDICTORS + ("party",)
# always dummy-coded, even when a survey file stores them as integer codes
CATEGORICAL = ("race", "gender", "income_cat", "educ", "party")
MAX_ITER = 100
SEPARATION_TOL = 1e-6
MAX_ABS_ESTIMATE = 10.0
MAX_STD_ERROR = 1e3

class UnreliableFitError(RuntimeError):
    """The estimates cannot be trusted: rank-deficient design, no convergence, or separation."""

@dataclass(frozen=True, eq=False)
class FittedModel:
    predictors: tuple
    terms: tuple
    params: np.ndarray
    bse: np.ndarray
    zvalues: np.ndarray
    pvalues: np.ndarray
    fitted: np.ndarray
    deviance: float
    null_deviance: float
    aic: float
    nobs: int
    encoder: DesignEncoder = field(repr=False)

    @property
    def n_params(self):
        return len(self.terms)

    @property
    def encoding(self):
        return dict(self.encoder.encoding or {})

    def coef_table(self):
        return pd.DataFrame({"term": list(self.terms), "estimate": self.params, "std_error": self.bse,
                             "z": self.zvalues, "p_value": self.pvalues})

    def predict(self, df):
        """P(possible_voter=1) for new records; unseen categories raise ValueError."""
        X = self.encoder.transform(df)
        return expit(X.to_numpy() @ self.params)

def split_predictors(df, predictors):
    categorical = [c for c in predictors if c in CATEGORICAL or not pd.api.types.is_numeric_dtype(df[c])]
    return [c for c in predictors if c not in categorical], categorical

def fit_logit(df, predictors, encoding=None, target=TARGET):
    """Binomial GLM with logit link, fitted by IRLS.

    Categorical predictors are dummy-coded from ``encoding`` (built from ``df``
    when omitted); pass the same table to nested fits so they share reference levels.
    """
    predictors = tuple(predictors)
    missing = [c for c in predictors + (target,) if c not in df.columns]
    if missing: raise ValueError(f"Columns not found: {missing}")
    numeric, categorical = split_predictors(df, predictors)
    if encoding is None:
        encoding = build_encoding(df, categorical)
    else:
        absent = [c for c in categorical if c not in encoding]
        if absent: raise ValueError(f"Encoding table has no levels for {absent}")
        encoding = {c: tuple(encoding[c]) for c in categorical}
    y = df[target].to_numpy(dtype=float)
    if not np.isin(y, [0.0, 1.0]).all():
        raise ValueError(f"{target!r} must be coded 0/1")

    encoder = DesignEncoder(numeric=tuple(numeric), encoding=encoding).fit(df)
    X = encoder.transform(df)
    rank = np.linalg.matrix_rank(X.to_numpy())
    if rank < X.shape[1]:
        raise UnreliableFitError(f"Design matrix is rank deficient: rank {rank} for {X.shape[1]} columns")

    with warnings.catch_warnings():
        warnings.simplefilter("error", PerfectSeparationWarning)
        warnings.simplefilter("error", ConvergenceWarning)
        try:
            res = sm.GLM(y, X, family=sm.families.Binomial()).fit(maxiter=MAX_ITER)
        except (PerfectSeparationError, PerfectSeparationWarning) as e:
            raise UnreliableFitError(f"Perfect separation: {e}") from e
        except ConvergenceWarning as e:
            raise UnreliableFitError(f"IRLS did not converge: {e}") from e
        except np.linalg.LinAlgError as e:
            raise UnreliableFitError(f"Singular information matrix: {e}") from e

    fitted = np.array(res.fittedvalues, dtype=float)
    params, bse = np.array(res.params, dtype=float), np.array(res.bse, dtype=float)
    if not getattr(res, "converged", True):
        raise UnreliableFitError(f"IRLS did not converge in {MAX_ITER} iterations")
    if not (np.isfinite(params).all() and np.isfinite(bse).all()):
        raise UnreliableFitError("Non-finite coefficient estimates or standard errors")
    if np.allclose(fitted, y, rtol=0, atol=SEPARATION_TOL):
        raise UnreliableFitError("Fitted probabilities reproduce the response: perfect separation")
    # quasi-complete separation: IRLS stops with an estimate drifting off to infinity
    runaway = [t for t, b, s in zip(X.columns[1:], params[1:], bse[1:]) if abs(b) > MAX_ABS_ESTIMATE or s > MAX_STD_ERROR]
    if runaway:
        raise UnreliableFitError(f"Quasi-complete separation on {runaway}: estimates are not identified")

    arrays = dict(params=params, bse=bse, zvalues=np.array(res.tvalues, dtype=float),
                  pvalues=np.array(res.pvalues, dtype=float), fitted=fitted)
    for a in arrays.values():
        a.setflags(write=False)
    return FittedModel(predictors=predictors, terms=tuple(X.columns), deviance=float(res.deviance),
                       null_deviance=float(res.null_deviance), aic=float(res.aic), nobs=int(res.nobs),
                       encoder=encoder, **arrays)

def fit_nested(df, encoding=None):
    """Reduced (no party) and full (with party) models on one shared encoding table."""
    if encoding is None:
        _, categorical = split_predictors(df, FULL_PREDICTORS)
        encoding = build_encoding(df, categorical)
    return fit_logit(df, REDUCED_PREDICTORS, encoding), fit_logit(df, FULL_PREDICTORS, encoding)

def odds_ratios(coefs, level=0.95):
    """exp(estimate) per term with a Wald interval from the coefficient table."""
    z = stats.norm.ppf(0.5 + level / 2)
    est, se = coefs["estimate"].to_numpy(dtype=float), coefs["std_error"].to_numpy(dtype=float)
    return pd.DataFrame({"term": coefs["term"].to_numpy(), "odds_ratio": np.exp(est),
                         "ci_lower": np.exp(est - z * se), "ci_upper": np.exp(est + z * se)})
