import numpy as np
from typing import Callable
import logging

from .structures import Region, Cell
from ..config import VARIANCE_RTOL

logger = logging.getLogger(__name__)


class VarianceIncreaseError(RuntimeError):
    """Интегрированная дисперсия выросла после комбинирования (ошибка численной согласованности)"""


def sample_cell(region: Region,
                n: int,
                predicate: Callable,
                rng,
                level: int = 0,
                vectorized: bool = False) -> Cell:
    """
    Построение листа по собственной порции равномерных выборок

    Args:
        region: Область ячейки
        n: Число выборок (>= 1)
        predicate: Проверка принадлежности точки области
        rng: Генератор с методом uniform(low, high, size)
        level: Уровень в дереве
        vectorized: Предикат принимает всю порцию (n x dim) и возвращает n флагов

    Returns:
        Лист с est == iest и var == ivar
    """
    if n < 1:
        raise ValueError(f"Cell requires at least one sample, got n={n}")

    points = rng.uniform(region.lower, region.upper, size=(n, region.dim))

    if vectorized:
        inside = np.asarray(predicate(points), dtype=bool).reshape(-1)
        if inside.size != n:
            raise ValueError(
                f"Vectorized predicate returned {inside.size} flags for {n} points"
            )
        hits = int(np.count_nonzero(inside))
    else:
        hits = sum(1 for point in points if predicate(point))

    p = hits / n
    rect_volume = region.volume()

    est = p * rect_volume
    var = p * (1.0 - p) * rect_volume ** 2 / n

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"    Cell L{level}: n={n}, hits={hits}, est={est:.6g}, var={var:.6g}")

    return Cell(
        region=region,
        samples=n,
        hits=hits,
        est=est,
        var=var,
        iest=est,
        ivar=var,
        level=level
    )


def update_integrated(cell: Cell) -> None:
    """
    Пересчёт интегрированных оценки и дисперсии узла по его детям

    Собственная оценка узла и сумма оценок детей комбинируются с весами,
    обратными дисперсиям:

        alpha = var / (var + cvar)
        iest = (1 - alpha) * est + alpha * cest
        ivar = (1 - alpha)^2 * var + alpha^2 * cvar

    Для листа ничего не делает.

    Raises:
        VarianceIncreaseError: если ivar вырос относительно предыдущего значения
    """
    if cell.is_leaf():
        return

    prev = cell.ivar
    a, b = cell.children

    cest = a.iest + b.iest
    cvar = a.ivar + b.ivar

    total = cell.var + cvar
    # Обе оценки точные - оставляем собственную
    alpha = cell.var / total if total > 0 else 0.0

    cell.iest = (1.0 - alpha) * cell.est + alpha * cest
    cell.ivar = (1.0 - alpha) ** 2 * cell.var + alpha ** 2 * cvar

    if cell.ivar > prev * (1.0 + VARIANCE_RTOL):
        raise VarianceIncreaseError(
            f"Integrated variance increased at level {cell.level}: "
            f"ivar={cell.ivar!r}, prev={prev!r}"
        )
