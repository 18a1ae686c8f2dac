from __future__ import annotations

from dataclasses import dataclass

import joblib
import numpy as np
from sklearn.decomposition import PCA


@dataclass(frozen=True)
class PcaArtifact:
    model: PCA
    # Per-component range of the baseline's own projections
    proj_min: np.ndarray
    proj_max: np.ndarray

    @property
    def rank(self) -> int:
        return int(self.model.n_components_)


def train_pca(X: np.ndarray, rank: int = 3, random_state: int = 1) -> PcaArtifact:
    """Fit a centered randomized PCA on baseline rows only."""
    k = max(1, min(int(rank), X.shape[0], X.shape[1]))
    model = PCA(n_components=k, svd_solver="randomized", random_state=random_state)
    with np.errstate(divide="ignore", invalid="ignore"):
        model.fit(X)
    proj = (X - model.mean_) @ model.components_.T
    return PcaArtifact(model=model, proj_min=proj.min(axis=0), proj_max=proj.max(axis=0))


def score_pca(art: PcaArtifact, X: np.ndarray) -> np.ndarray:
    """Relative reconstruction error in [0, 1]; higher => more anomalous.

    Component coordinates are clipped to the span seen on the baseline, so a
    row that is far out along a learned direction still reconstructs poorly.
    A row sitting exactly on the baseline centroid gives 0/0 = NaN; callers
    sanitize.
    """
    comps = art.model.components_
    xc = X - art.model.mean_
    proj = np.clip(xc @ comps.T, art.proj_min, art.proj_max)
    resid = xc - proj @ comps
    with np.errstate(divide="ignore", invalid="ignore"):
        s = np.sqrt((resid ** 2).sum(axis=1)) / np.sqrt((xc ** 2).sum(axis=1))
    return s.astype(np.float64)


def save_pca(path: str, art: PcaArtifact) -> None:
    joblib.dump({"model": art.model, "proj_min": art.proj_min, "proj_max": art.proj_max}, path)


def load_pca(path: str) -> PcaArtifact:
    obj = joblib.load(path)
    return PcaArtifact(model=obj["model"], proj_min=np.asarray(obj["proj_min"]), proj_max=np.asarray(obj["proj_max"]))
