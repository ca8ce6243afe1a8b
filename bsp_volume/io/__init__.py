"""
Экспорт дерева ячеек и статистики оценки
"""
from .exporters import export_cells_json, export_statistics

__all__ = ['export_cells_json', 'export_statistics']
