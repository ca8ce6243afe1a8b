"""
Трассировщик и гистограмма выборок для визуализации работы оценщика
"""
import json
import csv
import numpy as np
from collections import Counter
from pathlib import Path
from typing import Optional, List, Any, Callable
from dataclasses import dataclass, field
import logging

from ..config import HISTOGRAM_SCALE, MEMBERSHIP_SHADE

logger = logging.getLogger(__name__)


@dataclass
class SampleHistogram:
    """
    2D гистограмма занятости по координатам выборок

    Точка (x, y) попадает в бин (floor(x * scale), floor(y * scale)).
    Заполняется через предикат, обёрнутый в wrap().
    """
    scale: float = HISTOGRAM_SCALE
    counter: Counter = field(default_factory=Counter)

    def add(self, x: float, y: float) -> None:
        """Учёт одной точки"""
        ix = int(np.floor(x * self.scale))
        iy = int(np.floor(y * self.scale))
        self.counter[(ix, iy)] += 1

    def add_batch(self, points: np.ndarray) -> None:
        """Учёт порции точек (n x dim), используются первые две координаты"""
        bins = np.floor(np.asarray(points)[:, :2] * self.scale).astype(np.int64)
        self.counter.update(map(tuple, bins.tolist()))

    def wrap(self, predicate: Callable, vectorized: bool = False) -> Callable:
        """
        Обёртка предиката, записывающая координаты каждой проверенной точки

        Args:
            predicate: Исходный предикат
            vectorized: Предикат принимает порцию (n x dim)
        """
        if vectorized:
            def recording_predicate(points):
                self.add_batch(points)
                return predicate(points)
        else:
            def recording_predicate(point):
                self.add(point[0], point[1])
                return predicate(point)
        return recording_predicate

    def total(self) -> int:
        return sum(self.counter.values())

    def to_grid(self, membership: Optional[Callable[[float, float], bool]] = None) -> dict:
        """
        Растеризация гистограммы в сетку

        Args:
            membership: Истинная принадлежность области (x, y) -> bool,
                        вычисляется в углу каждого бина

        Returns:
            Словарь с границами бинов, интенсивностью (uint8, строки по y)
            и маской принадлежности
        """
        if not self.counter:
            raise ValueError("Histogram is empty, nothing to rasterize")

        keys = np.array(list(self.counter.keys()), dtype=np.int64)
        counts = np.array(list(self.counter.values()), dtype=np.float64)
        min_x, min_y = keys.min(axis=0)
        max_x, max_y = keys.max(axis=0)
        width = int(max_x - min_x + 1)
        height = int(max_y - min_y + 1)

        intensity = np.zeros((height, width), dtype=np.uint8)
        r = np.clip(np.floor(256.0 * counts / counts.max()), 0, 255).astype(np.uint8)
        intensity[keys[:, 1] - min_y, keys[:, 0] - min_x] = r

        grid = {
            'scale': float(self.scale),
            'min_bin': [int(min_x), int(min_y)],
            'max_bin': [int(max_x), int(max_y)],
            'max_count': int(counts.max()),
            'intensity': intensity
        }

        if membership is not None:
            xs = (np.arange(width) + min_x) / self.scale
            ys = (np.arange(height) + min_y) / self.scale
            grid['membership'] = self._membership_mask(membership, xs, ys)
            grid['membership_shade'] = MEMBERSHIP_SHADE

        return grid

    @staticmethod
    def _membership_mask(membership: Callable, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """
        Маска принадлежности (строки по y)

        Сначала один вызов на всей сетке meshgrid, для предикатов,
        принимающих только скаляры - поточечный обход.
        """
        grid_x, grid_y = np.meshgrid(xs, ys)
        try:
            mask = np.asarray(membership(grid_x, grid_y), dtype=bool)
        except (TypeError, ValueError) as e:
            logger.debug(f"Membership callback is not vectorized ({e}), evaluating pointwise")
            mask = None

        if mask is None or mask.shape != grid_x.shape:
            mask = np.array([[bool(membership(x, y)) for x in xs] for y in ys], dtype=bool)
        return mask

    def dump(self, path: Path, membership: Optional[Callable[[float, float], bool]] = None) -> None:
        """
        Сохранение растеризованной гистограммы в JSON

        Args:
            path: Путь к выходному файлу
            membership: Истинная принадлежность области для сравнения
        """
        grid = self.to_grid(membership)
        grid['intensity'] = grid['intensity'].tolist()
        if 'membership' in grid:
            grid['membership'] = grid['membership'].astype(int).tolist()
        grid['total_samples'] = self.total()

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(grid, f, ensure_ascii=False)

        logger.info(f"Histogram {grid['max_bin'][0] - grid['min_bin'][0] + 1}x"
                    f"{grid['max_bin'][1] - grid['min_bin'][1] + 1} saved to {path}")


@dataclass
class TraceRecorder:
    """
    Сборщик истории разбиений оценщика

    Записывает для каждого разбиения ось, уровень листа, размер порции
    и дисперсию корня до и после. При включённой записи статистики
    дублирует строки в CSV.
    """
    data: dict = field(default_factory=dict)
    splits: List[dict] = field(default_factory=list)

    _stats_file: Optional[Any] = None
    _stats_writer: Optional[Any] = None
    _stats_header_written: bool = False

    def __post_init__(self):
        """Инициализация структуры данных"""
        self.data = {
            'metadata': {
                'version': '1.0',
                'description': 'BSP Monte Carlo split trace'
            }
        }

    def axes(self) -> List[int]:
        """Последовательность осей разбиений"""
        return [s['axis'] for s in self.splits]

    def record_split(self, data: dict) -> None:
        """Запись одного разбиения"""
        self.splits.append(dict(data))

        if not self._stats_writer:
            return

        if not self._stats_header_written:
            self._stats_writer.writerow(data.keys())
            self._stats_header_written = True
        self._stats_writer.writerow(data.values())

    def record_result(self, estimate: float, ci95: float, stats: dict) -> None:
        """Запись итогового результата"""
        self.data['result'] = {
            'estimate': float(estimate),
            'ci95': float(ci95),
            'samples_used': int(stats.get('samples_used', 0)),
            'splits_performed': int(stats.get('splits_performed', 0)),
            'terminal_state': stats.get('terminal_state')
        }
        logger.debug(f"Recorded result after {len(self.splits)} splits")

    def start_stats_recording(self, path: Path):
        """Открывает CSV-файл для записи статистики разбиений."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._stats_file = open(path, 'w', newline='', encoding='utf-8')
            self._stats_writer = csv.writer(self._stats_file)
            logger.info(f"Split statistics recording enabled, saving to {path}")
        except IOError as e:
            logger.error(f"Failed to open stats file {path}: {e}")
            self._stats_file = None
            self._stats_writer = None

    def close(self):
        """Закрывает CSV файл статистики."""
        if self._stats_file:
            self._stats_file.close()
            self._stats_file = None
            self._stats_writer = None
            logger.debug("Stats CSV file closed.")

    def dump(self, path: Path) -> None:
        """
        Сохранение трассировки в JSON файл

        Args:
            path: Путь к выходному файлу
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = dict(self.data)
        payload['splits'] = self.splits

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

        logger.info(f"Trace saved to {path}")

    def get_summary(self) -> dict:
        """
        Получение краткой сводки по трассировке

        Returns:
            Словарь со статистикой
        """
        summary = {
            'n_splits': len(self.splits),
            'has_result': 'result' in self.data
        }

        if self.splits:
            summary['max_level'] = max(s['level'] for s in self.splits)
            summary['final_root_ivar'] = self.splits[-1]['root_ivar_after']

        return summary
