import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.RandomState(1234)


@pytest.fixture
def host_plane(rng):
    """256x256 luma plane with integer samples"""
    return rng.randint(0, 256, size=(256, 256)).astype(np.float64)


@pytest.fixture
def mid_plane(rng):
    """64x64 plane kept away from 0 and 255 so embedding never clips"""
    return rng.uniform(50, 200, size=(64, 64))


@pytest.fixture
def bitmap_32(rng):
    return rng.randint(0, 2, size=(32, 32)).astype(bool)


@pytest.fixture
def bitmap_8(rng):
    return rng.randint(0, 2, size=(8, 8)).astype(bool)


@pytest.fixture
def gray_cover():
    """Smooth 64x64 grayscale cover"""
    y, x = np.mgrid[0:64, 0:64]
    return (80 + 40 * np.sin(x / 9.0) + 30 * np.cos(y / 7.0)).astype(np.uint8)


@pytest.fixture
def color_cover():
    """Smooth 64x64 BGR cover with every channel inside [60, 190]"""
    y, x = np.mgrid[0:64, 0:64]
    b = 120 + 50 * np.sin(x / 11.0)
    g = 125 + 45 * np.cos(y / 8.0)
    r = 125 + 40 * np.sin((x + y) / 13.0)
    return np.dstack([b, g, r]).astype(np.uint8)
