"""
mvdist.backends.genz
====================

Default integration backend: randomized lattice rules after Genz.

The probability of ``lower <= (C X + delta) / s <= upper`` (X ~ N(0, Sigma),
``s = 1`` for the normal case and ``s = sqrt(chi2_nu / nu)`` for Student-t) is
rewritten by separation of variables as an integral over the unit cube:

1. Unbounded rows are dropped. The row covariance ``C Sigma C^T`` is
   standardized and factorized by a pivoted, semidefinite Cholesky. Pivots are
   chosen by smallest expected interval mass (variable prioritization).
   Rows that depend on earlier pivots are grouped with the last column they
   load on, which handles more rows than dimensions (e.g. a sum row).
   Zero-variance rows only constrain the shift.
2. The integrand is a product of conditional interval masses, one per
   Cholesky column; for Student-t a leading coordinate supplies ``s``.
3. Each round uses a fast component-by-component lattice of prime size with
   random shifts, tent periodization and antithetic points. The error is three
   standard errors across shifts; rounds are combined by inverse-variance
   weighting until the tolerance or the evaluation cap is reached.

Critical values reuse the same integrand with bounds scaled by ``c`` and solve
``coverage(c) = 1 - alpha`` on a fixed point set per round, so the coverage is
monotone in ``c``.

`GenzBackend` keeps a random generator and a lattice cache as instance state
and is therefore not reentrant; the public operations call it only through
the invocation gate.

Doctest (exact 1-D case, no random variables involved):
>>> from mvdist.backends.genz import GenzBackend
>>> err, value, nevals, inform = GenzBackend(seed=1).mvdist(
...     1, [1.0], 0, 1, [-1.96], [1.0], [1.96], [2], [0.0], 1000, 1e-6, 0.0)
>>> round(value, 4), inform
(0.95, 0)
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.fft import fft, ifft
from scipy.optimize import brentq
from scipy.special import ndtr, ndtri
from scipy.stats import chi2

from mvdist.backends.base import BoundaryOutcome

logger = logging.getLogger(__name__)

STATUS_NORMAL = 0
STATUS_LIMIT_REACHED = 1
STATUS_INVALID = 2
STATUS_NOT_PSD = 3

MAX_DIMENSION = 1000
SINGULAR_TOL = 1e-10
N_SHIFTS = 8
ERROR_FACTOR = 3.0
FIRST_LATTICE_SIZE = 31
LATTICE_GROWTH = 1.5
MIN_LATTICE_SIZE = 7
MAX_CRITICAL_SCALE = 2.0**30

_TINY = 1e-300
_ONE_MINUS = float(np.nextafter(1.0, 0.0))


# --- lattice construction ---


def _primes_up_to(n: int) -> np.ndarray:
    sieve = np.ones(n + 1, dtype=bool)
    sieve[:2] = False
    for p in range(2, math.isqrt(n) + 1):
        if sieve[p]:
            sieve[p * p :: p] = False
    return np.flatnonzero(sieve)


def _prime_factors(n: int) -> List[int]:
    factors = []
    p = 2
    while p * p <= n:
        if n % p == 0:
            factors.append(p)
            while n % p == 0:
                n //= p
        p += 1
    if n > 1:
        factors.append(n)
    return factors


def _primitive_root(p: int) -> int:
    exponents = [(p - 1) // f for f in _prime_factors(p - 1)]
    g = 2
    while any(pow(g, e, p) == 1 for e in exponents):
        g += 1
    return g


def cbc_lattice(dim: int, n_points: int) -> Tuple[np.ndarray, int]:
    """Rank-1 lattice generator by fast component-by-component construction.

    Args:
        dim: Number of lattice dimensions (>= 1)
        n_points: Requested number of points; rounded down to a prime

    Returns:
        Tuple of (generator vector in (0, 1), actual prime number of points)

    Reference:
        Nuyens, D. and Cools, R. "Fast Component-by-Component Construction,
        a Reprise for Different Kernels", MCQMC 2004, Springer, 2006.
    """
    n_points = int(_primes_up_to(max(n_points, 3))[-1])
    half = (n_points - 1) // 2
    g = _primitive_root(n_points)

    perm = np.ones(half, dtype=np.int64)
    for j in range(half - 1):
        perm[j + 1] = (g * perm[j]) % n_points
    perm = np.minimum(n_points - perm, perm)

    pn = perm / n_points
    kernel = pn * pn - pn + 1.0 / 6
    kernel_fft = fft(kernel)
    weights = np.hstack([1.0, 0.8 ** np.arange(dim - 1)])

    z = np.arange(1, dim + 1)
    prod = np.ones(half)
    w = 0
    for s in range(1, dim):
        reordered = np.hstack([kernel[: w + 1][::-1], kernel[w + 1 :][::-1]])
        prod = prod * (1.0 + weights[s - 1] * reordered)
        w = int(ifft(kernel_fft * fft(prod)).real.argmin())
        z[s] = perm[w]
    return z / n_points, n_points


def _lattice_sizes() -> Iterator[int]:
    size = float(FIRST_LATTICE_SIZE)
    while True:
        yield int(size)
        size *= LATTICE_GROWTH


# --- problem reduction ---


@dataclass
class ReducedProblem:
    """Constraint rows after standardization and pivoted Cholesky.

    Attributes:
        chol: (k, rank) lower-trapezoidal loadings of the live rows
        groups: Row indices per Cholesky column (pivot plus dependent rows)
        lower, upper, shift: Standardized limits of the live rows
        fixed_lower, fixed_upper, fixed_shift: Rows with zero variance
    """

    chol: np.ndarray
    groups: List[np.ndarray]
    lower: np.ndarray
    upper: np.ndarray
    shift: np.ndarray
    fixed_lower: np.ndarray
    fixed_upper: np.ndarray
    fixed_shift: np.ndarray

    @property
    def rank(self) -> int:
        return len(self.groups)

    def dimension(self, nu: int) -> int:
        """Number of unit-cube coordinates the integrand consumes."""
        return max(self.rank - 1, 0) + (1 if nu > 0 else 0)


def _truncated_mean(a: float, b: float) -> float:
    mass = ndtr(b) - ndtr(a)
    if mass > SINGULAR_TOL:
        return float((np.exp(-a * a / 2) - np.exp(-b * b / 2)) / (math.sqrt(2 * math.pi) * mass))
    if a < -10:
        return b
    if b > 10:
        return a
    return (a + b) / 2


def reduce_problem(
    sigma: np.ndarray,
    rows: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    shift: np.ndarray,
) -> ReducedProblem:
    """Standardize the active rows and factorize their covariance."""
    rowcov = rows @ sigma @ rows.T
    scale = np.sqrt(np.maximum(np.diag(rowcov), 0.0))
    fixed = scale <= SINGULAR_TOL * max(1.0, float(scale.max()))
    live = np.flatnonzero(~fixed)

    d = scale[live]
    corr = rowcov[np.ix_(live, live)] / np.outer(d, d)
    lo = lower[live] / d
    hi = upper[live] / d
    sh = shift[live] / d

    k = live.size
    chol = np.zeros((k, k))
    residual = np.diag(corr).copy()
    column = np.full(k, -1)
    means = np.zeros(k)
    free = list(range(k))
    rank = 0

    for j in range(k):
        pivot, best_mass, limits = -1, math.inf, (0.0, 0.0)
        for i in free:
            if residual[i] <= SINGULAR_TOL:
                continue
            root = math.sqrt(residual[i])
            partial = chol[i, :j] @ means[:j]
            a = (lo[i] - sh[i] - partial) / root
            b = (hi[i] - sh[i] - partial) / root
            mass = ndtr(b) - ndtr(a)
            if pivot < 0 or mass < best_mass:
                pivot, best_mass, limits = i, mass, (a, b)
        if pivot < 0:
            break

        root = math.sqrt(residual[pivot])
        chol[pivot, j] = root
        residual[pivot] = 0.0
        column[pivot] = j
        free.remove(pivot)
        for i in free:
            if residual[i] <= SINGULAR_TOL:
                continue
            chol[i, j] = (corr[i, pivot] - chol[i, :j] @ chol[pivot, :j]) / root
            residual[i] -= chol[i, j] ** 2
            if residual[i] <= SINGULAR_TOL:
                column[i] = j
        means[j] = _truncated_mean(*limits)
        rank += 1

    return ReducedProblem(
        chol=chol[:, :rank],
        groups=[np.flatnonzero(column == j) for j in range(rank)],
        lower=lo,
        upper=hi,
        shift=sh,
        fixed_lower=lower[fixed],
        fixed_upper=upper[fixed],
        fixed_shift=shift[fixed],
    )


# --- integrand ---


def _scaled(bounds: np.ndarray, scale: float) -> np.ndarray:
    if scale == 1.0:
        return bounds
    return np.multiply(bounds, scale, out=bounds.copy(), where=np.isfinite(bounds))


def integrand(problem: ReducedProblem, nu: int, points: np.ndarray, scale: float = 1.0) -> np.ndarray:
    """Evaluate the separated integrand at unit-cube `points` (N x dimension)."""
    n_points = points.shape[0]
    if nu > 0:
        u = np.clip(points[:, 0], _TINY, _ONE_MINUS)
        s = np.maximum(np.sqrt(chi2.ppf(u, nu) / nu), _TINY)
        points = points[:, 1:]
    else:
        s = np.ones(n_points)

    lower = _scaled(problem.lower, scale)
    upper = _scaled(problem.upper, scale)
    values = np.ones(n_points)

    fixed = zip(
        _scaled(problem.fixed_lower, scale),
        _scaled(problem.fixed_upper, scale),
        problem.fixed_shift,
    )
    for lo, hi, sh in fixed:
        values *= (lo * s <= sh) & (sh <= hi * s)

    last = problem.rank - 1
    z = np.zeros((problem.rank, n_points))
    for j, rows in enumerate(problem.groups):
        a = np.full(n_points, -np.inf)
        b = np.full(n_points, np.inf)
        for i in rows:
            coef = problem.chol[i, j]
            partial = problem.chol[i, :j] @ z[:j]
            lo = (lower[i] * s - problem.shift[i] - partial) / coef
            hi = (upper[i] * s - problem.shift[i] - partial) / coef
            if coef < 0:
                lo, hi = hi, lo
            a = np.maximum(a, lo)
            b = np.minimum(b, hi)
        pa = ndtr(a)
        width = np.maximum(ndtr(b) - pa, 0.0)
        values *= width
        if j < last:
            z[j] = ndtri(np.clip(pa + points[:, j] * width, _TINY, _ONE_MINUS))
    return values


def estimate(
    problem: ReducedProblem,
    nu: int,
    points: np.ndarray,
    n_shifts: int,
    scale: float = 1.0,
) -> Tuple[float, float, int]:
    """Return (mean, standard error across shifts, evaluations) over a point set."""
    if points.shape[1] == 0:
        return float(integrand(problem, nu, points, scale)[0]), 0.0, 1
    values = 0.5 * (integrand(problem, nu, points, scale) + integrand(problem, nu, 1.0 - points, scale))
    means = values.reshape(n_shifts, -1).mean(axis=1)
    stderr = float(means.std(ddof=1) / math.sqrt(n_shifts))
    return float(means.mean()), stderr, 2 * points.shape[0]


def _combine(value: float, error: float, new_value: float, new_error: float) -> Tuple[float, float]:
    """Inverse-variance weighting of two error-bounded estimates."""
    if not math.isfinite(error):
        return new_value, new_error
    if error == 0.0:
        return value, error
    wt = 1.0 / (1.0 + (new_error / error) ** 2)
    return value + wt * (new_value - value), math.sqrt(wt) * new_error


# --- input preparation ---


def _invalid_sizes(n: int, m: int) -> bool:
    return n < 1 or m < 1 or n > MAX_DIMENSION


def _symmetric(covariance: Sequence[float], n: int) -> np.ndarray:
    c = np.asarray(covariance, dtype=np.float64).reshape((n, n), order="F")
    return np.tril(c) + np.tril(c, -1).T


def _is_psd(sigma: np.ndarray) -> bool:
    if not np.all(np.isfinite(sigma)):
        return False
    eig = np.linalg.eigvalsh(sigma)
    tol = SINGULAR_TOL * sigma.shape[0] * max(1.0, float(np.abs(eig).max()))
    return bool(eig.min() >= -tol)


def _active_rows(
    n: int,
    m: int,
    lower: Sequence[float],
    constraints: Sequence[float],
    upper: Sequence[float],
    infin: Sequence[int],
    shift: Sequence[float],
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Drop unbounded rows; return (rows, lower, upper, shift) with +-inf on inactive sides."""
    codes = np.asarray(infin, dtype=np.int64)
    rows = np.asarray(constraints, dtype=np.float64).reshape((m, n), order="F")
    lo = np.where(codes == 0, -np.inf, np.asarray(lower, dtype=np.float64))
    hi = np.where(codes == 1, np.inf, np.asarray(upper, dtype=np.float64))
    keep = codes >= 0
    return rows[keep], lo[keep], hi[keep], np.asarray(shift, dtype=np.float64)[keep]


class _BudgetExhausted(Exception):
    pass


class _Unreachable(Exception):
    pass


class _Coverage:
    """Coverage probability as a function of the bound scale on one point set."""

    def __init__(self, problem: ReducedProblem, nu: int, points: np.ndarray, n_shifts: int, budget: int):
        self.problem = problem
        self.nu = nu
        self.points = points
        self.n_shifts = n_shifts
        self.budget = budget
        self.evaluations = 0

    def __call__(self, scale: float) -> Tuple[float, float]:
        cost = 1 if self.points.shape[1] == 0 else 2 * self.points.shape[0]
        if self.evaluations + cost > self.budget:
            raise _BudgetExhausted
        value, stderr, used = estimate(self.problem, self.nu, self.points, self.n_shifts, scale)
        self.evaluations += used
        return value, stderr


def _solve_scale(coverage: _Coverage, target: float, xtol: float) -> Tuple[float, float]:
    """Return (c, error of c) with coverage(c) = target on a fixed point set."""
    p0, _ = coverage(0.0)
    if p0 > target:
        raise _Unreachable
    if p0 == target:
        return 0.0, 0.0

    lo, hi = 0.0, 1.0
    while coverage(hi)[0] < target:
        lo, hi = hi, 2.0 * hi
        if hi > MAX_CRITICAL_SCALE:
            raise _Unreachable
    root = brentq(lambda c: coverage(c)[0] - target, lo, hi, xtol=xtol)

    _, stderr = coverage(root)
    if stderr == 0.0:
        return root, 0.0
    h = max(1e-3 * root, 1e-6)
    left = max(root - h, 0.0)
    slope = (coverage(root + h)[0] - coverage(left)[0]) / (root + h - left)
    if slope <= 0.0:
        return root, math.inf
    return root, ERROR_FACTOR * stderr / slope


class GenzBackend:
    """Non-reentrant randomized-lattice implementation of `MVBackend`.

    Args:
        seed: Seed for the random lattice shifts; ``None`` draws fresh entropy
        n_shifts: Random shifts per round (the error estimate uses their spread)
    """

    def __init__(self, seed: Optional[int] = None, n_shifts: int = N_SHIFTS):
        if n_shifts < 2:
            raise ValueError(f"n_shifts must be at least 2, got {n_shifts}")
        self._rng = np.random.default_rng(seed)
        self._n_shifts = n_shifts
        self._lattices: Dict[Tuple[int, int], Tuple[np.ndarray, int]] = {}

    def _lattice(self, dim: int, n_points: int) -> Tuple[np.ndarray, int]:
        key = (dim, n_points)
        if key not in self._lattices:
            self._lattices[key] = cbc_lattice(dim, n_points)
        return self._lattices[key]

    def _point_set(self, dim: int, requested: int) -> Tuple[np.ndarray, int]:
        """Shifted, tent-periodized lattice points, stacked shift by shift."""
        q, n_points = self._lattice(dim, requested)
        shifts = self._rng.random((self._n_shifts, dim))
        base = np.outer(np.arange(n_points), q)
        x = np.abs(2.0 * ((base[None, :, :] + shifts[:, None, :]) % 1.0) - 1.0)
        return x.reshape(self._n_shifts * n_points, dim), n_points

    def _rounds(self, dim: int) -> Iterable[Optional[int]]:
        return [None] if dim == 0 else _lattice_sizes()

    # --- boundary operations ---

    def mvdist(
        self,
        n: int,
        covariance: Sequence[float],
        nu: int,
        m: int,
        lower: Sequence[float],
        constraints: Sequence[float],
        upper: Sequence[float],
        infin: Sequence[int],
        delta: Sequence[float],
        maxpts: int,
        abseps: float,
        releps: float,
    ) -> BoundaryOutcome:
        if _invalid_sizes(n, m):
            return 0.0, 0.0, 0, STATUS_INVALID
        sigma = _symmetric(covariance, n)
        if not _is_psd(sigma):
            return 0.0, 0.0, 0, STATUS_NOT_PSD

        rows, lo, hi, sh = _active_rows(n, m, lower, constraints, upper, infin, delta)
        if np.any(lo > hi):
            return 0.0, 0.0, 0, STATUS_NORMAL
        if rows.shape[0] == 0:
            return 0.0, 1.0, 0, STATUS_NORMAL

        problem = reduce_problem(sigma, rows, lo, hi, sh)
        return self._integrate(problem, nu, maxpts, abseps, releps)

    def _integrate(
        self, problem: ReducedProblem, nu: int, maxpts: int, abseps: float, releps: float
    ) -> BoundaryOutcome:
        dim = problem.dimension(nu)
        if dim == 0:
            value, _, used = estimate(problem, nu, np.zeros((1, 0)), 1)
            return 0.0, value, used, STATUS_NORMAL

        value, error, nevals = 0.0, math.inf, 0
        status = STATUS_LIMIT_REACHED
        for requested in _lattice_sizes():
            affordable = (maxpts - nevals) // (2 * self._n_shifts)
            size = min(requested, affordable)
            if size < MIN_LATTICE_SIZE:
                break
            points, n_points = self._point_set(dim, size)
            round_value, stderr, used = estimate(problem, nu, points, self._n_shifts)
            nevals += used
            value, error = _combine(value, error, round_value, ERROR_FACTOR * stderr)
            logger.debug(
                "mvdist round: dim=%d points=%d value=%.6g error=%.3g evaluations=%d",
                dim, n_points, value, error, nevals,
            )
            if error <= max(abseps, releps * abs(value)):
                status = STATUS_NORMAL
                break
            if size < requested:
                break
        if not math.isfinite(error):
            error = 1.0
        return error, value, nevals, status

    def mvcrit(
        self,
        n: int,
        covariance: Sequence[float],
        nu: int,
        m: int,
        lower: Sequence[float],
        constraints: Sequence[float],
        upper: Sequence[float],
        infin: Sequence[int],
        alpha: float,
        maxpts: int,
        abseps: float,
    ) -> BoundaryOutcome:
        if _invalid_sizes(n, m) or not 0.0 < alpha < 1.0:
            return 0.0, 0.0, 0, STATUS_INVALID
        sigma = _symmetric(covariance, n)
        if not _is_psd(sigma):
            return 0.0, 0.0, 0, STATUS_NOT_PSD

        rows, lo, hi, sh = _active_rows(n, m, lower, constraints, upper, infin, np.zeros(m))
        widening = np.all(lo <= 0.0) and np.all(hi >= 0.0) and np.all(lo < hi)
        if rows.shape[0] == 0 or not widening:
            return 0.0, 0.0, 0, STATUS_INVALID

        problem = reduce_problem(sigma, rows, lo, hi, sh)
        return self._critical(problem, nu, 1.0 - alpha, maxpts, abseps)

    def _critical(
        self, problem: ReducedProblem, nu: int, target: float, maxpts: int, abseps: float
    ) -> BoundaryOutcome:
        dim = problem.dimension(nu)
        xtol = max(1e-3 * abseps, 1e-12)
        value, error, nevals = 0.0, math.inf, 0
        status = STATUS_LIMIT_REACHED

        for requested in self._rounds(dim):
            if requested is None:
                points, n_shifts = np.zeros((1, 0)), 1
            else:
                affordable = (maxpts - nevals) // (2 * self._n_shifts)
                if affordable < MIN_LATTICE_SIZE:
                    break
                points, _ = self._point_set(dim, min(requested, affordable))
                n_shifts = self._n_shifts

            coverage = _Coverage(problem, nu, points, n_shifts, maxpts - nevals)
            try:
                root, root_error = _solve_scale(coverage, target, xtol)
            except _BudgetExhausted:
                nevals += coverage.evaluations
                break
            except _Unreachable:
                return 0.0, 0.0, nevals + coverage.evaluations, STATUS_INVALID
            nevals += coverage.evaluations

            value, error = _combine(value, error, root, root_error)
            logger.debug(
                "mvcrit round: dim=%d value=%.6g error=%.3g evaluations=%d",
                dim, value, error, nevals,
            )
            if error <= abseps:
                status = STATUS_NORMAL
                break
        return error, value, nevals, status
