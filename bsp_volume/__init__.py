from __future__ import annotations
from typing import Any

# 1) Версия пакета
try:
    from importlib.metadata import version as _pkg_version, PackageNotFoundError
    __version__ = _pkg_version("bsp-volume")
except PackageNotFoundError:
    # в editable/develop-режиме пакет может быть не «установлен»
    __version__ = "0.1.0"

__all__ = ["__version__", "BspMonteCarlo", "EstimatorConfig", "Tolerance"]


# 2) Ленивый экспорт для публичного API (избегаем ранних импортов)
def __getattr__(name: str) -> Any:
    if name == "BspMonteCarlo":
        from .core.estimator import BspMonteCarlo
        return BspMonteCarlo
    if name in ("EstimatorConfig", "Tolerance"):
        from . import config
        return getattr(config, name)
    raise AttributeError(name)
