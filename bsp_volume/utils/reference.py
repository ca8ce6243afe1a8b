"""
Эталонные объёмы и сводка повторных запусков для оценки смещения и покрытия
"""
import numpy as np
from typing import Iterable, List, Tuple
import logging

from scipy.special import gamma

from ..config import EstimatorConfig
from ..core.estimator import BspMonteCarlo

logger = logging.getLogger(__name__)


def nsphere_volume(r: float, dim: int) -> float:
    """
    Объём dim-мерного шара радиуса r

        V = pi^(d/2) * r^d / Gamma(d/2 + 1)
    """
    if dim < 1:
        raise ValueError(f"dim должен быть >= 1, получено: {dim}")
    return float(np.pi ** (dim / 2.0) * r ** dim / gamma(dim / 2.0 + 1.0))


def summarize_trials(results: Iterable[Tuple[float, float]], true_value: float) -> dict:
    """
    Сводка по повторным оценкам

    Args:
        results: Пары (оценка, ci95)
        true_value: Точное значение

    Returns:
        rms - среднеквадратичная ошибка, mean_ci - средняя полуширина,
        coverage - доля запусков, где |y - true| <= ci
    """
    ys = np.array(list(results), dtype=np.float64).reshape(-1, 2)
    if ys.shape[0] == 0:
        raise ValueError("No trial results to summarize")

    est, ci = ys[:, 0], ys[:, 1]
    return {
        'trials': int(ys.shape[0]),
        'true': float(true_value),
        'rms': float(np.sqrt(np.mean((est - true_value) ** 2))),
        'mean_ci': float(np.mean(ci)),
        'coverage': float(np.mean(np.abs(est - true_value) <= ci))
    }


def ball_predicate(r: float):
    """Векторизованный предикат |x| <= r"""
    def inside(points: np.ndarray) -> np.ndarray:
        return np.sqrt(np.sum(points * points, axis=-1)) <= r
    return inside


def run_trials(dim: int,
               n_trials: int,
               config: EstimatorConfig,
               radius: float = 1.0,
               margin: float = 1.1,
               seed=None) -> List[Tuple[float, float]]:
    """
    Независимые оценки объёма шара в кубе [-margin*r, margin*r]^dim

    Каждый запуск получает собственный генератор из SeedSequence.spawn.
    seed может быть int, None или уже порождённой SeedSequence.

    Returns:
        Список пар (оценка, ci95)
    """
    if isinstance(seed, np.random.SeedSequence):
        seed_seq = seed
    else:
        seed_seq = np.random.SeedSequence(seed)
    children = seed_seq.spawn(n_trials)
    lower = [-margin * radius] * dim
    upper = [margin * radius] * dim

    inside = ball_predicate(radius)
    if config.vectorized:
        predicate = inside
    else:
        predicate = lambda point: bool(inside(point))  # noqa: E731

    results = []
    for child in children:
        mc = BspMonteCarlo(np.random.default_rng(child), config)
        results.append(mc.estimate_volume(predicate, lower, upper))

    logger.debug(f"Finished {n_trials} trials for {dim}D ball")
    return results
