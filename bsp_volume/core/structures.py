from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Sequence
import numpy as np

from ..config import CI95_Z


@dataclass
class Region:
    """
    Гиперпрямоугольник в пространстве выборок

    Attributes:
        lower: Нижние границы по осям, shape (dim,)
        upper: Верхние границы по осям, shape (dim,)
    """
    lower: np.ndarray  # shape: (dim,), dtype: float64
    upper: np.ndarray  # shape: (dim,), dtype: float64

    def __post_init__(self):
        """Валидация границ"""
        self.lower = np.asarray(self.lower, dtype=np.float64).reshape(-1)
        self.upper = np.asarray(self.upper, dtype=np.float64).reshape(-1)

        if self.lower.shape != self.upper.shape:
            raise ValueError(
                f"Bounds length mismatch: lower has {self.lower.size}, "
                f"upper has {self.upper.size}"
            )

        if self.lower.size == 0:
            raise ValueError("Region must have at least one axis")

        if not np.all(np.isfinite(self.lower)) or not np.all(np.isfinite(self.upper)):
            raise ValueError("Region bounds must be finite")

        # Вырожденные оси (upper == lower) допустимы только для глубоких разбиений,
        # пользовательские границы дополнительно проверяются в is_degenerate
        if np.any(self.upper < self.lower):
            bad = np.flatnonzero(self.upper < self.lower).tolist()
            raise ValueError(f"Reversed bounds: upper < lower on axes {bad}")

    @classmethod
    def from_bounds(cls, lower_bounds: Sequence[float], upper_bounds: Sequence[float]) -> 'Region':
        return cls(np.asarray(lower_bounds), np.asarray(upper_bounds))

    def is_degenerate(self) -> bool:
        """Есть ли ось нулевой ширины"""
        return bool(np.any(self.upper <= self.lower))

    @property
    def dim(self) -> int:
        return int(self.lower.size)

    def volume(self) -> float:
        """Объём прямоугольника"""
        return float(np.prod(self.dimensions()))

    def dimensions(self) -> np.ndarray:
        """Размеры по осям"""
        return self.upper - self.lower

    def midpoint(self, axis: int) -> float:
        return float((self.lower[axis] + self.upper[axis]) / 2.0)

    def bisect(self, axis: int) -> Tuple['Region', 'Region']:
        """
        Деление пополам по оси

        Returns:
            (нижняя половина, верхняя половина)
        """
        mid = self.midpoint(axis)

        upper_a = self.upper.copy()
        upper_a[axis] = mid
        lower_b = self.lower.copy()
        lower_b[axis] = mid

        return Region(self.lower.copy(), upper_a), Region(lower_b, self.upper.copy())

    def to_dict(self) -> dict:
        return {
            'lower': self.lower.tolist(),
            'upper': self.upper.tolist()
        }


@dataclass
class Cell:
    """
    Узел BSP дерева

    Attributes:
        region: Область ячейки
        samples: Число собственных выборок
        hits: Число попаданий среди собственных выборок
        est, var: Оценка и дисперсия только по собственным выборкам
        iest, ivar: Интегрированные оценка и дисперсия с учётом детей
        level: Уровень в дереве (0 для корня)
        children: Пара дочерних ячеек (None для листьев)
    """
    region: Region
    samples: int
    hits: int
    est: float
    var: float
    iest: float
    ivar: float
    level: int = 0
    children: Optional[Tuple['Cell', 'Cell']] = None

    def __post_init__(self):
        if self.level < 0:
            raise ValueError("Level must be non-negative")

    def is_leaf(self) -> bool:
        """Проверка, является ли узел листом"""
        return self.children is None

    def ci95(self) -> float:
        """Полуширина 95% доверительного интервала"""
        return float(np.sqrt(self.ivar) * CI95_Z)

    def depth(self) -> int:
        """Глубина поддерева с корнем в данном узле"""
        depth = 0
        stack = [(self, 0)]
        while stack:
            node, level = stack.pop()
            depth = max(depth, level)
            if not node.is_leaf():
                stack.extend((child, level + 1) for child in node.children)
        return depth

    def leaf_count(self) -> int:
        """Количество листьев в поддереве"""
        return sum(1 for _ in self.iter_leaves())

    def node_count(self) -> int:
        """Общее количество узлов в поддереве"""
        return sum(1 for _ in self.iter_nodes())

    def iter_nodes(self):
        """Итератор по всем узлам (прямой обход)"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf():
                stack.extend(reversed(node.children))

    def iter_leaves(self):
        """Итератор по листовым узлам"""
        for node in self.iter_nodes():
            if node.is_leaf():
                yield node

    def total_samples(self) -> int:
        """Суммарное число выборок в поддереве"""
        return sum(node.samples for node in self.iter_nodes())

    def get_stats(self) -> dict:
        """Статистика поддерева"""
        leaf_vars = [leaf.ivar for leaf in self.iter_leaves()]
        return {
            'depth': self.depth(),
            'node_count': self.node_count(),
            'leaf_count': len(leaf_vars),
            'total_samples': self.total_samples(),
            'max_leaf_var': max(leaf_vars) if leaf_vars else 0.0,
            'median_leaf_var': float(np.median(leaf_vars)) if leaf_vars else 0.0
        }
