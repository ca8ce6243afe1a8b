"""
Конфигурация и константы для BSP Monte Carlo оценки объёма
"""
from dataclasses import dataclass, field, asdict
from typing import Optional, Literal
import json
from pathlib import Path

# ============ КОНСТАНТЫ ============

# Доверительный интервал
CI95_Z = 1.96  # Квантиль нормального распределения для двустороннего 95% интервала

# Сэмплирование
DEFAULT_STEP_SAMPLES = 1000  # Размер одной порции выборок
STATS_STEP_SAMPLES = 10_000  # Размер порции по умолчанию для серии запусков stats
DEFAULT_MAX_SAMPLES = 1_000_000  # Общий бюджет выборок
DEFAULT_RELATIVE_TOLERANCE = 0.01  # Относительная точность по умолчанию
MIN_SPLIT_SAMPLES = 2  # Минимум выборок на разбиение (по одной на каждого ребёнка)

# Эпсилоны и пороги
VARIANCE_RTOL = 1e-12  # Допуск на округление при проверке монотонности дисперсии

# Визуализация
HISTOGRAM_SCALE = 100.0  # Число бинов гистограммы на единицу длины
MEMBERSHIP_SHADE = 64  # Яркость подсветки точек внутри области


@dataclass
class Tolerance:
    """
    Критерий остановки по ширине доверительного интервала

    Attributes:
        mode: 'abs' - абсолютный порог, 'rel' - доля от оценки
        value: Порог (неотрицательный)
    """
    mode: Literal['abs', 'rel'] = 'rel'
    value: float = DEFAULT_RELATIVE_TOLERANCE

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Проверка режима и порога"""
        if self.mode not in ('abs', 'rel'):
            raise ValueError(f"Unknown tolerance mode: {self.mode!r}")
        # NaN не проходит сравнение и тоже отклоняется
        if not self.value >= 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.value}")

    @classmethod
    def absolute(cls, threshold: float) -> 'Tolerance':
        return cls('abs', float(threshold))

    @classmethod
    def relative(cls, fraction: float) -> 'Tolerance':
        return cls('rel', float(fraction))

    def is_met(self, ci95: float, estimate: float) -> bool:
        """Достигнута ли требуемая точность"""
        if self.mode == 'abs':
            return ci95 <= self.value
        return ci95 <= self.value * estimate

    def __str__(self) -> str:
        return f"CI95{self.mode.capitalize()}({self.value:g})"


@dataclass
class EstimatorConfig:
    """Конфигурация BSP Monte Carlo оценщика"""

    # ======== Критерий остановки ========
    tolerance: Tolerance = field(default_factory=Tolerance)

    # ======== Бюджет выборок ========
    step_samples: int = DEFAULT_STEP_SAMPLES  # Выборок на одну порцию (корень или разбиение)
    max_samples: int = DEFAULT_MAX_SAMPLES  # Общий бюджет на один вызов

    # ======== Предикат ========
    vectorized: bool = False  # Предикат получает всю порцию (n x dim) за один вызов

    # ======== Прочие параметры ========
    random_seed: Optional[int] = None  # Seed для CLI; ядро само генератор не создаёт

    # ======== Трассировка ========
    trace_enabled: bool = False

    def validate(self) -> None:
        """Проверка корректности конфигурации"""
        if self.step_samples < MIN_SPLIT_SAMPLES:
            raise ValueError(
                f"step_samples ({self.step_samples}) "
                f"должен быть >= {MIN_SPLIT_SAMPLES}"
            )

        if self.max_samples < 1:
            raise ValueError(f"max_samples должен быть >= 1, получено: {self.max_samples}")

        if not isinstance(self.tolerance, Tolerance):
            raise ValueError(f"tolerance должен быть Tolerance, получено: {self.tolerance!r}")

        self.tolerance.validate()

    def save(self, path: Path) -> None:
        """Сохранение конфигурации в JSON"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> 'EstimatorConfig':
        """Загрузка конфигурации из JSON"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data.get('tolerance'), dict):
            data['tolerance'] = Tolerance(**data['tolerance'])
        return cls(**data)

    @classmethod
    def from_args(cls, args, base: Optional['EstimatorConfig'] = None) -> 'EstimatorConfig':
        """Создание конфигурации из аргументов командной строки"""
        config = base if base is not None else cls()

        if getattr(args, 'step_samples', None) is not None:
            config.step_samples = args.step_samples
        if getattr(args, 'max_samples', None) is not None:
            config.max_samples = args.max_samples

        if getattr(args, 'tol_abs', None) is not None:
            config.tolerance = Tolerance.absolute(args.tol_abs)
        elif getattr(args, 'tol_rel', None) is not None:
            config.tolerance = Tolerance.relative(args.tol_rel)

        if getattr(args, 'seed', None) is not None:
            config.random_seed = args.seed

        if hasattr(args, 'trace_json'):
            config.trace_enabled = args.trace_json or getattr(args, 'stats_csv', False)

        config.validate()
        return config
