"""
Модуль визуализации для BSP оценщика
"""
from .tracer import SampleHistogram, TraceRecorder

__all__ = ['SampleHistogram', 'TraceRecorder']
