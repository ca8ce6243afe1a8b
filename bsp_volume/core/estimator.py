import time
from typing import Callable, Optional, Sequence, Tuple
import logging

from .structures import Region, Cell
from .sampling import sample_cell, update_integrated
from ..config import EstimatorConfig, MIN_SPLIT_SAMPLES
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)

CONVERGED = 'converged'
BUDGET_EXHAUSTED = 'budget_exhausted'


class BspMonteCarlo:
    """Адаптивная Monte Carlo оценка объёма с уточнением через BSP дерево"""

    def __init__(self,
                 rng,
                 config: Optional[EstimatorConfig] = None,
                 trace: Optional[TraceRecorder] = None):
        """
        Args:
            rng: Генератор равномерных чисел с методом uniform(low, high, size),
                 например np.random.Generator. Оценщик свой генератор не создаёт
            config: Конфигурация (по умолчанию EstimatorConfig())
            trace: Опциональный трассировщик разбиений
        """
        self.rng = rng
        self.config = config if config is not None else EstimatorConfig()
        self.trace = trace

        # Дерево текущего вызова (пересоздаётся в estimate_volume)
        self.root: Optional[Cell] = None

        # Статистика последнего вызова
        self.stats = {
            'build_time': 0.0,
            'samples_used': 0,
            'splits_performed': 0,
            'terminal_state': None
        }

    def estimate_volume(self,
                        predicate: Callable,
                        lower_bounds: Sequence[float],
                        upper_bounds: Sequence[float]) -> Tuple[float, float]:
        """
        Оценка объёма области, заданной предикатом принадлежности

        Args:
            predicate: Функция точки (np.ndarray длины dim) -> bool.
                       При config.vectorized получает массив (n, dim) и возвращает n флагов
            lower_bounds: Нижние границы ограничивающего прямоугольника
            upper_bounds: Верхние границы

        Returns:
            (оценка объёма, полуширина 95% доверительного интервала)
        """
        if len(lower_bounds) != len(upper_bounds):
            raise ValueError(
                f"lower_bounds and upper_bounds differ in length: "
                f"{len(lower_bounds)} != {len(upper_bounds)}"
            )

        region = Region.from_bounds(lower_bounds, upper_bounds)
        if region.is_degenerate():
            raise ValueError("upper_bounds must be strictly greater than lower_bounds on every axis")

        self.config.validate()

        start_time = time.perf_counter()
        self.stats = {
            'build_time': 0.0,
            'samples_used': 0,
            'splits_performed': 0,
            'terminal_state': None
        }

        dim = region.dim
        step = self.config.step_samples
        tol = self.config.tolerance
        remaining = self.config.max_samples

        logger.debug(
            f"Estimating volume in {dim}D box of volume {region.volume():.6g}: "
            f"tol={tol}, step={step}, budget={remaining}"
        )

        # Корень строится из первой порции и расходует бюджет так же, как разбиение
        batch = min(step, remaining)
        root = sample_cell(region, batch, predicate, self.rng,
                           level=0, vectorized=self.config.vectorized)
        remaining -= batch
        self.stats['samples_used'] += batch
        self.root = root

        split_index = 0
        while True:
            ci95 = root.ci95()

            if tol.is_met(ci95, root.iest):
                self.stats['terminal_state'] = CONVERGED
                break

            if remaining < MIN_SPLIT_SAMPLES:
                self.stats['terminal_state'] = BUDGET_EXHAUSTED
                break

            batch = min(step, remaining)
            axis = split_index % dim
            prev_ivar = root.ivar

            leaf = self._split(root, predicate, batch, axis)

            remaining -= batch
            self.stats['samples_used'] += batch
            self.stats['splits_performed'] += 1

            if self.trace:
                self.trace.record_split({
                    'split_index': split_index,
                    'axis': axis,
                    'level': leaf.level,
                    'samples': batch,
                    'leaf_var': leaf.var,
                    'root_ivar_before': prev_ivar,
                    'root_ivar_after': root.ivar,
                    'root_iest': root.iest
                })

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"[Split {split_index}] axis={axis}, level={leaf.level}, "
                    f"iest={root.iest:.6g}, ci95={root.ci95():.6g}, remaining={remaining}"
                )

            split_index += 1

        ci95 = root.ci95()
        self.stats['build_time'] = time.perf_counter() - start_time

        if self.stats['terminal_state'] == BUDGET_EXHAUSTED:
            logger.info(
                f"Sample budget exhausted after {self.stats['samples_used']} samples: "
                f"{root.iest:.6g} +/- {ci95:.6g} (requested {tol})"
            )
        else:
            logger.debug(
                f"Converged after {self.stats['samples_used']} samples: "
                f"{root.iest:.6g} +/- {ci95:.6g}"
            )

        return root.iest, ci95

    def _split(self,
               root: Cell,
               predicate: Callable,
               samples: int,
               axis: int) -> Cell:
        """
        Уточнение листа с наибольшей дисперсией

        Спуск идёт к ребёнку с большим ivar (при равенстве к первому).
        Найденный лист делится пополам по axis, затем интегрированные
        значения пересчитываются снизу вверх по пройденному пути.

        Returns:
            Разбитый узел (бывший лист)
        """
        path = [root]
        node = root
        while not node.is_leaf():
            a, b = node.children
            node = b if a.ivar < b.ivar else a
            path.append(node)

        region_a, region_b = node.region.bisect(axis)
        level = node.level + 1

        child_a = sample_cell(region_a, samples - samples // 2, predicate, self.rng,
                              level=level, vectorized=self.config.vectorized)
        child_b = sample_cell(region_b, samples // 2, predicate, self.rng,
                              level=level, vectorized=self.config.vectorized)
        node.children = (child_a, child_b)

        # Комбинирование локально, поэтому предки пересчитываются по пути к корню
        for ancestor in reversed(path):
            update_integrated(ancestor)

        return node
