"""Fit y = exp(a x^2 + b x + c) to noisy samples by nonlinear least squares."""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass

import numpy as np

log = logging.getLogger(__name__)

TRUE_PARAMS = (1.0, 2.0, 1.0)
INITIAL_GUESS = (2.0, -1.0, 5.0)


@dataclass(frozen=True)
class FitResult:
    """Outcome of a fit: estimate, final cost, steps taken and accepted costs."""

    estimate: tuple[float, float, float]
    cost: float
    iterations: int
    costs: tuple[float, ...]


def generate_data(n=100, a=1.0, b=2.0, c=1.0, sigma=1.0, seed=None):
    """Samples x = i/100 with Gaussian noise of standard deviation sigma squared."""
    if n < 0:
        raise ValueError("n must not be negative")
    rng = np.random.default_rng(seed)
    x = np.arange(n) / 100.0
    y = np.exp(a * x * x + b * x + c) + rng.normal(0.0, sigma * sigma, n)
    return x, y


def _prepare(x_data, y_data, initial, sigma):
    x = np.asarray(x_data, dtype=float)
    y = np.asarray(y_data, dtype=float)
    if x.shape != y.shape or x.ndim != 1:
        raise ValueError("x_data and y_data must be 1-D and of equal length")
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    params = np.asarray(initial, dtype=float).reshape(-1).copy()
    if params.shape != (3,):
        raise ValueError("initial must hold three parameters")
    return x, y, params


def _residuals(x, y, params):
    a, b, c = params
    with np.errstate(over="ignore", invalid="ignore"):
        e = np.exp(a * x * x + b * x + c)
    r = y - e
    jac = np.column_stack([-x * x * e, -x * e, -e])
    return r, jac


def _result(x, y, params, iterations, costs):
    r, _ = _residuals(x, y, params)
    return FitResult(tuple(float(p) for p in params), float(r @ r), iterations, tuple(costs))


def gauss_newton(x_data, y_data, initial=INITIAL_GUESS, iterations=100, sigma=1.0):
    """Gauss-Newton; stops when the cost no longer decreases or the step is not finite."""
    x, y, params = _prepare(x_data, y_data, initial, sigma)
    weight = 1.0 / (sigma * sigma)
    costs: list[float] = []
    last_cost = 0.0
    steps = 0
    for it in range(iterations):
        r, jac = _residuals(x, y, params)
        h = weight * (jac.T @ jac)
        g = -weight * (jac.T @ r)
        cost = float(r @ r)
        try:
            dx = np.linalg.solve(h, g)
        except np.linalg.LinAlgError:
            log.info("normal equations are singular")
            break
        if not np.all(np.isfinite(dx)):
            log.info("result is nan")
            break
        if it > 0 and cost >= last_cost:
            log.info("cost %g >= last cost %g, stopping", cost, last_cost)
            break
        params += dx
        last_cost = cost
        costs.append(cost)
        steps += 1
        log.debug("total cost: %g, update: %s, estimated params: %s", cost, dx, params)
    return _result(x, y, params, steps, costs)


def levenberg_marquardt(x_data, y_data, initial=INITIAL_GUESS, iterations=50, sigma=1.0):
    """Levenberg-Marquardt with a trust-region style damping update."""
    x, y, params = _prepare(x_data, y_data, initial, sigma)
    weight = 1.0 / (sigma * sigma)
    r, jac = _residuals(x, y, params)
    cost = weight * float(r @ r)
    h = weight * (jac.T @ jac)
    g = -weight * (jac.T @ r)
    lam = max(1e-5 * float(np.max(np.diag(h))), 1e-12)
    nu = 2.0
    costs = [float(r @ r)]
    steps = 0
    for _ in range(iterations):
        if np.max(np.abs(g)) < 1e-12:
            break
        steps += 1
        try:
            dx = np.linalg.solve(h + lam * np.eye(3), g)
        except np.linalg.LinAlgError:
            lam *= nu
            nu *= 2
            continue
        if np.linalg.norm(dx) <= 1e-12 * (np.linalg.norm(params) + 1e-12):
            break
        candidate = params + dx
        r_new, jac_new = _residuals(x, y, candidate)
        new_cost = weight * float(r_new @ r_new)
        predicted = float(dx @ (lam * dx + g))
        if np.isfinite(new_cost) and predicted > 0 and cost - new_cost > 0:
            rho = (cost - new_cost) / predicted
            params, r, jac, cost = candidate, r_new, jac_new, new_cost
            h = weight * (jac.T @ jac)
            g = -weight * (jac.T @ r)
            lam *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
            nu = 2.0
            costs.append(float(r @ r))
            log.debug("accepted step, cost %g, lambda %g", cost, lam)
        else:
            lam *= nu
            nu *= 2
    return _result(x, y, params, steps, costs)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fit an exponential curve to synthetic data.")
    parser.add_argument(
        "--method", choices=("gauss-newton", "levenberg-marquardt"), default="gauss-newton"
    )
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--iterations", type=int, default=None)
    args = parser.parse_args(argv)

    x, y = generate_data(seed=args.seed)
    fit = gauss_newton if args.method == "gauss-newton" else levenberg_marquardt
    kwargs = {} if args.iterations is None else {"iterations": args.iterations}
    start = time.perf_counter()
    result = fit(x, y, **kwargs)
    elapsed = time.perf_counter() - start
    print(f"solve time cost = {elapsed} seconds. ")
    print("estimated abc = " + ", ".join(f"{p:g}" for p in result.estimate))
    return 0