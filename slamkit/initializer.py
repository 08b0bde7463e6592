"""Map initialisation from two views.

A homography and a fundamental matrix are estimated by RANSAC. The model
chosen by the ratio of their scores is decomposed into the relative motion,
and the matched points are triangulated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from slamkit.two_view import check_rt, compute_f21, compute_h21, decompose_e, normalize

_SET_SIZE = 8
_HOMOGRAPHY_TH = 5.991
_FUNDAMENTAL_TH = 3.841
_FUNDAMENTAL_SCORE_TH = 5.991
_HOMOGRAPHY_RATIO = 0.40
_MIN_PARALLAX = 1.0
_MIN_TRIANGULATED = 50
_SINGULAR_RATIO = 1.00001


@dataclass
class Reconstruction:
    """Relative motion of the second camera and the triangulated points.

    ``points3d`` holds one row per reference keypoint, in the first camera's
    frame; ``triangulated`` flags the rows that were accepted with enough
    parallax.
    """

    R21: np.ndarray
    t21: np.ndarray
    points3d: np.ndarray
    triangulated: list = field(default_factory=list)


def _as_xy(points):
    rows = [
        (float(p.x), float(p.y)) if hasattr(p, "x") and hasattr(p, "y") else tuple(np.ravel(p)[:2])
        for p in points
    ]
    return np.array(rows, dtype=np.float64).reshape(-1, 2)


def _inverse(matrix):
    try:
        return np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        return np.zeros_like(matrix)


class Initializer:
    """Initialises a map from a reference view and a later view of the same scene."""

    def __init__(self, reference_points, K, sigma=1.0, iterations=200, seed=0):
        self.K = np.array(K, dtype=np.float64)
        if self.K.shape != (3, 3):
            raise ValueError(f"K must be 3x3, got shape {self.K.shape}")
        if iterations < 1:
            raise ValueError("at least one RANSAC iteration is needed")
        self._keys1 = _as_xy(reference_points)
        self.sigma = float(sigma)
        self.sigma2 = self.sigma * self.sigma
        self.max_iterations = int(iterations)
        self._rng = np.random.default_rng(seed)
        self._keys2 = None
        self._matches = None
        self._sets = []
        self.matched1 = []

    def _require_matches(self):
        if self._matches is None:
            raise RuntimeError("initialize() must be called with the current view first")

    def _matched_points(self):
        idx1 = np.array([m[0] for m in self._matches], dtype=int)
        idx2 = np.array([m[1] for m in self._matches], dtype=int)
        return self._keys1[idx1], self._keys2[idx2]

    def initialize(self, current_points, matches12):
        """Try to reconstruct the scene from the current view.

        ``matches12`` holds, for each reference keypoint, the index of its
        match among ``current_points`` or a negative number where there is
        none. Returns a :class:`Reconstruction`, or None when the views do
        not allow a reliable initialisation.
        """
        keys2 = _as_xy(current_points)
        matches12 = [int(j) for j in matches12]
        if len(matches12) != len(self._keys1):
            raise ValueError("one match entry is needed per reference keypoint")

        pairs = []
        for i, j in enumerate(matches12):
            if j >= 0:
                if j >= len(keys2):
                    raise ValueError(f"match index {j} out of range for {len(keys2)} points")
                pairs.append((i, j))
        if len(pairs) < _SET_SIZE:
            raise ValueError(f"at least {_SET_SIZE} matches are needed, got {len(pairs)}")

        self._keys2 = keys2
        self._matches = pairs
        self.matched1 = [j >= 0 for j in matches12]
        self._sets = [
            self._rng.choice(len(pairs), _SET_SIZE, replace=False)
            for _ in range(self.max_iterations)
        ]

        H, inliers_h, score_h = self.find_homography()
        F, inliers_f, score_f = self.find_fundamental()

        total = score_h + score_f
        ratio = score_h / total if total > 0 else 0.0

        if ratio > _HOMOGRAPHY_RATIO:
            if H is None:
                return None
            return self.reconstruct_h(inliers_h, H, _MIN_PARALLAX, _MIN_TRIANGULATED)
        if F is None:
            return None
        return self.reconstruct_f(inliers_f, F, _MIN_PARALLAX, _MIN_TRIANGULATED)

    def _minimal_sets(self):
        pn1, T1 = normalize(self._keys1)
        pn2, T2 = normalize(self._keys2)
        idx1 = np.array([m[0] for m in self._matches], dtype=int)
        idx2 = np.array([m[1] for m in self._matches], dtype=int)
        for chosen in self._sets:
            yield pn1[idx1[chosen]], pn2[idx2[chosen]], T1, T2

    def find_homography(self):
        """RANSAC over the minimal sets; returns ``(H21, inliers, score)``."""
        self._require_matches()
        best_h = None
        best_inliers = [False] * len(self._matches)
        best_score = 0.0
        for set1, set2, T1, T2 in self._minimal_sets():
            H21 = _inverse(T2) @ compute_h21(set1, set2) @ T1
            H12 = _inverse(H21)
            score, inliers = self.check_homography(H21, H12, self.sigma)
            if score > best_score:
                best_h, best_inliers, best_score = H21.copy(), inliers, score
        return best_h, best_inliers, best_score

    def find_fundamental(self):
        """RANSAC over the minimal sets; returns ``(F21, inliers, score)``."""
        self._require_matches()
        best_f = None
        best_inliers = [False] * len(self._matches)
        best_score = 0.0
        for set1, set2, T1, T2 in self._minimal_sets():
            F21 = T2.T @ compute_f21(set1, set2) @ T1
            score, inliers = self.check_fundamental(F21, self.sigma)
            if score > best_score:
                best_f, best_inliers, best_score = F21.copy(), inliers, score
        return best_f, best_inliers, best_score

    def check_homography(self, H21, H12, sigma):
        """Score a homography by symmetric transfer error; returns ``(score, inliers)``."""
        self._require_matches()
        H21 = np.asarray(H21, dtype=np.float64)
        H12 = np.asarray(H12, dtype=np.float64)
        p1, p2 = self._matched_points()
        inv_sigma2 = 1.0 / (sigma * sigma)

        def transfer(H, points):
            homogeneous = np.column_stack([points, np.ones(len(points))]) @ H.T
            return homogeneous[:, :2] * (1.0 / homogeneous[:, 2:3])

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            chi1 = np.sum((p1 - transfer(H12, p2)) ** 2, axis=1) * inv_sigma2
            chi2 = np.sum((p2 - transfer(H21, p1)) ** 2, axis=1) * inv_sigma2
        out1 = chi1 > _HOMOGRAPHY_TH
        out2 = chi2 > _HOMOGRAPHY_TH
        score = np.sum(_HOMOGRAPHY_TH - chi1[~out1]) + np.sum(_HOMOGRAPHY_TH - chi2[~out2])
        return float(score), (~(out1 | out2)).tolist()

    def check_fundamental(self, F21, sigma):
        """Score a fundamental matrix by distances to epipolar lines; returns ``(score, inliers)``."""
        self._require_matches()
        F21 = np.asarray(F21, dtype=np.float64)
        p1, p2 = self._matched_points()
        h1 = np.column_stack([p1, np.ones(len(p1))])
        h2 = np.column_stack([p2, np.ones(len(p2))])
        inv_sigma2 = 1.0 / (sigma * sigma)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            lines2 = h1 @ F21.T
            num2 = np.sum(lines2 * h2, axis=1)
            chi1 = num2 * num2 / (lines2[:, 0] ** 2 + lines2[:, 1] ** 2) * inv_sigma2
            lines1 = h2 @ F21
            num1 = np.sum(lines1 * h1, axis=1)
            chi2 = num1 * num1 / (lines1[:, 0] ** 2 + lines1[:, 1] ** 2) * inv_sigma2

        out1 = chi1 > _FUNDAMENTAL_TH
        out2 = chi2 > _FUNDAMENTAL_TH
        score = np.sum(_FUNDAMENTAL_SCORE_TH - chi1[~out1]) + np.sum(
            _FUNDAMENTAL_SCORE_TH - chi2[~out2]
        )
        return float(score), (~(out1 | out2)).tolist()

    def _check(self, R, t, inliers):
        return check_rt(
            R, t, self._keys1, self._keys2, self._matches, inliers, self.K, 4.0 * self.sigma2
        )

    def reconstruct_f(self, inliers, F21, min_parallax=_MIN_PARALLAX, min_triangulated=_MIN_TRIANGULATED):
        """Recover motion and structure from a fundamental matrix, or None."""
        self._require_matches()
        inliers = list(inliers)
        n_inliers = sum(bool(flag) for flag in inliers)

        E21 = self.K.T @ np.asarray(F21, dtype=np.float64) @ self.K
        R1, R2, t = decompose_e(E21)
        hypotheses = [(R1, t), (R2, t), (R1, -t), (R2, -t)]
        checks = [self._check(R, tr, inliers) for R, tr in hypotheses]

        max_good = max(check.n_good for check in checks)
        min_good = max(int(0.9 * n_inliers), min_triangulated)
        n_similar = sum(1 for check in checks if check.n_good > 0.7 * max_good)
        if max_good < min_good or n_similar > 1:
            return None

        for (R, tr), check in zip(hypotheses, checks):
            if check.n_good == max_good:
                if check.parallax > min_parallax:
                    return Reconstruction(
                        R21=R.copy(),
                        t21=tr.copy(),
                        points3d=check.points3d,
                        triangulated=list(check.good),
                    )
                return None
        return None

    def reconstruct_h(self, inliers, H21, min_parallax=_MIN_PARALLAX, min_triangulated=_MIN_TRIANGULATED):
        """Recover motion and structure from a homography (Faugeras' eight solutions), or None."""
        self._require_matches()
        inliers = list(inliers)
        n_inliers = sum(bool(flag) for flag in inliers)

        A = np.linalg.inv(self.K) @ np.asarray(H21, dtype=np.float64) @ self.K
        U, w, Vt = np.linalg.svd(A, full_matrices=True)
        s = np.linalg.det(U) * np.linalg.det(Vt)
        d1, d2, d3 = (float(value) for value in w)

        with np.errstate(divide="ignore", invalid="ignore"):
            ratio12 = d1 / d2 if d2 != 0 else math.inf
            ratio23 = d2 / d3 if d3 != 0 else math.inf
        if ratio12 < _SINGULAR_RATIO or ratio23 < _SINGULAR_RATIO:
            return None

        aux1 = math.sqrt((d1 * d1 - d2 * d2) / (d1 * d1 - d3 * d3))
        aux3 = math.sqrt((d2 * d2 - d3 * d3) / (d1 * d1 - d3 * d3))
        x1 = (aux1, aux1, -aux1, -aux1)
        x3 = (aux3, -aux3, aux3, -aux3)
        cross = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3))

        hypotheses = []

        # case d' = d2
        aux_stheta = cross / ((d1 + d3) * d2)
        ctheta = (d2 * d2 + d1 * d3) / ((d1 + d3) * d2)
        stheta = (aux_stheta, -aux_stheta, -aux_stheta, aux_stheta)
        for i in range(4):
            Rp = np.eye(3)
            Rp[0, 0] = ctheta
            Rp[0, 2] = -stheta[i]
            Rp[2, 0] = stheta[i]
            Rp[2, 2] = ctheta
            tp = np.array([x1[i], 0.0, -x3[i]]) * (d1 - d3)
            t = U @ tp
            hypotheses.append((s * U @ Rp @ Vt, t / np.linalg.norm(t)))

        # case d' = -d2
        aux_sphi = cross / ((d1 - d3) * d2)
        cphi = (d1 * d3 - d2 * d2) / ((d1 - d3) * d2)
        sphi = (aux_sphi, -aux_sphi, -aux_sphi, aux_sphi)
        for i in range(4):
            Rp = np.eye(3)
            Rp[0, 0] = cphi
            Rp[0, 2] = sphi[i]
            Rp[1, 1] = -1.0
            Rp[2, 0] = sphi[i]
            Rp[2, 2] = -cphi
            tp = np.array([x1[i], 0.0, x3[i]]) * (d1 + d3)
            t = U @ tp
            hypotheses.append((s * U @ Rp @ Vt, t / np.linalg.norm(t)))

        best_good = 0
        second_good = 0
        best = None
        best_parallax = -1.0
        for R, t in hypotheses:
            check = self._check(R, t, inliers)
            if check.n_good > best_good:
                second_good = best_good
                best_good = check.n_good
                best = (R, t, check)
                best_parallax = check.parallax
            elif check.n_good > second_good:
                second_good = check.n_good

        if (
            best is not None
            and second_good < 0.75 * best_good
            and best_parallax >= min_parallax
            and best_good > min_triangulated
            and best_good > 0.9 * n_inliers
        ):
            R, t, check = best
            return Reconstruction(
                R21=R.copy(), t21=t.copy(), points3d=check.points3d, triangulated=list(check.good)
            )
        return None