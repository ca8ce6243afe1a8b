import json
from pathlib import Path
from typing import Optional, Tuple
from dataclasses import asdict
import logging

from ..core.structures import Cell

logger = logging.getLogger(__name__)


def export_cells_json(root: Cell, output_file: Path) -> None:
    """
    Экспорт всех узлов BSP дерева в JSON

    Формат:
    [
        {
            "lower": [x, ...],     # Нижние границы ячейки
            "upper": [x, ...],     # Верхние границы ячейки
            "level": int,          # Уровень в дереве
            "leaf": bool,
            "samples": int,        # Собственные выборки
            "hits": int,
            "est": float, "var": float,    # По собственным выборкам
            "iest": float, "ivar": float   # Интегрированные
        },
        ...
    ]
    """
    cells_data = []

    for node in root.iter_nodes():
        cell_dict = node.region.to_dict()
        cell_dict.update({
            'level': node.level,
            'leaf': node.is_leaf(),
            'samples': node.samples,
            'hits': node.hits,
            'est': node.est,
            'var': node.var,
            'iest': node.iest,
            'ivar': node.ivar
        })
        cells_data.append(cell_dict)

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(cells_data, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(cells_data)} cells to {output_file}")


def export_statistics(root: Cell,
                      output_file: Path,
                      result: Tuple[float, float],
                      build_time: float,
                      peak_memory_mb: Optional[float] = None,
                      cpu_time_sec: Optional[float] = None,
                      config=None) -> None:
    """
    Экспорт статистики оценки

    Args:
        root: Корневой узел дерева
        output_file: Путь к JSON файлу
        result: (оценка, полуширина ci95)
        build_time: Время оценки (с)
        peak_memory_mb: Потребление памяти (МБ)
        cpu_time_sec: Процессорное время (с)
        config: Конфигурация оценщика
    """
    tree_stats = root.get_stats()
    estimate, ci95 = result

    stats = {
        'result': {
            'estimate': float(estimate),
            'ci95': float(ci95),
            'relative_ci95': float(ci95 / estimate) if estimate else None
        },
        'tree': tree_stats,
        'performance': {
            'build_time_sec': float(build_time),
            'samples_per_sec': float(tree_stats['total_samples'] / build_time) if build_time > 0 else None,
            'peak_memory_mb': peak_memory_mb,
            'cpu_time_sec': cpu_time_sec
        }
    }

    if config is not None:
        stats['config'] = asdict(config)

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(stats, f, ensure_ascii=False, indent=2)

    logger.info(f"Statistics exported to {output_file}")
