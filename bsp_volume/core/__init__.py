"""
Ядро: BSP дерево ячеек и адаптивный оценщик объёма
"""
from .structures import Region, Cell
from .sampling import sample_cell, update_integrated, VarianceIncreaseError
from .estimator import BspMonteCarlo

__all__ = ['Region', 'Cell', 'sample_cell', 'update_integrated',
           'VarianceIncreaseError', 'BspMonteCarlo']
