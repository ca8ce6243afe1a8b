"""
Утилиты для проверки оценщика на эталонных объёмах
"""
from .reference import (
    nsphere_volume,
    summarize_trials,
    ball_predicate,
    run_trials
)

__all__ = [
    'nsphere_volume',
    'summarize_trials',
    'ball_predicate',
    'run_trials'
]
