"""Pytest configuration: fast-by-default TDD setup.

Slow tests (real OCR model loading) are skipped unless --slow is passed.
Run the full suite:   pytest --slow
Run fast tests only:  pytest          (default)
"""
import cv2
import numpy as np
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Run slow tests that load ML models (EasyOCR)",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--slow"):
        return  # run everything
    skip_slow = pytest.mark.skip(reason="slow test skipped, pass --slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# =============================================================================
# Shared helpers
# =============================================================================

MAP_SIZE = 200
CIRCLE_CENTER = (100, 100)
CIRCLE_RADIUS = 30


def make_map_image(text: str = "42") -> np.ndarray:
    """200x200 RGB map: gray paper, one white circle with dark digits in it."""
    img = np.full((MAP_SIZE, MAP_SIZE, 3), 80, dtype=np.uint8)
    cv2.circle(img, CIRCLE_CENTER, CIRCLE_RADIUS, (255, 255, 255), thickness=-1)
    cv2.putText(
        img,
        text,
        (CIRCLE_CENTER[0] - 13, CIRCLE_CENTER[1] + 8),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.7,
        (0, 0, 0),
        2,
    )
    return img


class StubOcrEngine:
    """OCR engine returning a fixed answer for any image with dark content."""

    def __init__(self, text: str = "42", confidence: float = 0.9):
        self.text = text
        self.confidence = confidence
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        if image.min() >= 250:
            return None
        return self.text, self.confidence


class CountingFactory:
    """Engine factory that counts how often it was called."""

    def __init__(self, engine=None):
        self.engine = engine or StubOcrEngine()
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.engine


@pytest.fixture
def map_image() -> np.ndarray:
    return make_map_image()


@pytest.fixture
def stub_engine() -> StubOcrEngine:
    return StubOcrEngine()
