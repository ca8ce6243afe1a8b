import logging

import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def unit_disc():
    """Точечный предикат x^2 + y^2 <= 1"""
    def inside(point):
        return bool(point[0] ** 2 + point[1] ** 2 <= 1.0)
    return inside


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)
