from dataclasses import dataclass
import numpy as np, pandas as pd
from sklearn.metrics import auc, confusion_matrix

DEFAULT_CUTOFF = 0.6
SWEEP = np.linspace(0.05, 0.95, 19)

def _validated(y, p):
    y = np.asarray(y); p = np.asarray(p, dtype=float)
    if y.shape != p.shape or y.ndim != 1:
        raise ValueError(f"labels and probabilities must be 1-d and aligned, got {y.shape} and {p.shape}")
    if not np.isin(y, [0, 1]).all():
        raise ValueError("labels must be 0/1")
    if np.isnan(p).any():
        raise ValueError("probabilities contain NaN")
    return y.astype(int), p

def _rate(num, den):
    return num / den if den else float("nan")

@dataclass(frozen=True)
class ConfusionMatrix:
    cutoff: float
    tp: int
    fn: int
    fp: int
    tn: int

    @property
    def tpr(self):
        return _rate(self.tp, self.tp + self.fn)

    @property
    def fpr(self):
        return _rate(self.fp, self.fp + self.tn)

    def as_frame(self):
        return pd.DataFrame([[self.tn, self.fp], [self.fn, self.tp]],
                            index=pd.Index([0, 1], name="actual"), columns=pd.Index([0, 1], name="predicted"))

    def as_row(self):
        return {"cutoff": self.cutoff, "TP": self.tp, "FN": self.fn, "FP": self.fp, "TN": self.tn,
                "TPR": self.tpr, "FPR": self.fpr}

@dataclass(frozen=True, eq=False)
class EvaluationResult:
    roc: pd.DataFrame
    auc: float
    confusion: ConfusionMatrix

def roc_points(y, p):
    """(fpr, tpr) at -inf and at every distinct fitted value, ascending; positive iff p > threshold."""
    y, p = _validated(y, p)
    pos, neg = np.sort(p[y == 1]), np.sort(p[y == 0])
    if not len(pos) or not len(neg):
        raise ValueError("ROC curve needs both positive and negative records")
    thresholds = np.concatenate([[-np.inf], np.unique(p)])
    tpr = 1 - np.searchsorted(pos, thresholds, side="right") / len(pos)
    fpr = 1 - np.searchsorted(neg, thresholds, side="right") / len(neg)
    return pd.DataFrame({"threshold": thresholds, "fpr": fpr, "tpr": tpr})

def roc_auc(points):
    # trapezoids over threshold order; fpr is non-increasing so auc() integrates it as such
    return float(auc(points["fpr"].to_numpy(), points["tpr"].to_numpy()))

def confusion_at(y, p, cutoff=DEFAULT_CUTOFF):
    y, p = _validated(y, p)
    yhat = (p > cutoff).astype(int)
    tn, fp, fn, tp = confusion_matrix(y, yhat, labels=[0, 1]).ravel()
    return ConfusionMatrix(cutoff=float(cutoff), tp=int(tp), fn=int(fn), fp=int(fp), tn=int(tn))

def threshold_sweep(y, p, cutoffs=SWEEP):
    return pd.DataFrame([confusion_at(y, p, t).as_row() for t in cutoffs])

def evaluate(y, p, cutoff=DEFAULT_CUTOFF):
    roc = roc_points(y, p)
    return EvaluationResult(roc=roc, auc=roc_auc(roc), confusion=confusion_at(y, p, cutoff))
