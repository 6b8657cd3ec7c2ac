"""
Unit tests for the preprocessing module: behavioral tests only.

Covers: error handling, algorithm correctness and side-effect validation
for the pure image functions used by the detection steps.
"""

import numpy as np
import pytest

from preprocessing import (
    to_uint8,
    to_grayscale,
    gaussian_blur,
    detect_edges,
    fit_to_square,
    sharpen,
)


class TestToGrayscale:
    """Tests for the to_grayscale function."""

    def test_pure_function_no_mutation(self):
        """Input should not be modified."""
        rgb = np.full((10, 10, 3), 128, dtype=np.uint8)
        original_data = rgb.copy()
        _ = to_grayscale(rgb)
        assert np.array_equal(rgb, original_data)

    def test_white_image_produces_white_gray(self):
        white = np.full((10, 10, 3), 255, dtype=np.uint8)
        gray = to_grayscale(white)
        assert np.all(gray == 255)

    def test_grayscale_input_is_copied(self):
        gray = np.full((5, 5), 7, dtype=np.uint8)
        result = to_grayscale(gray)
        assert result is not gray
        assert np.array_equal(result, gray)

    def test_rgba_drops_alpha(self):
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[..., 3] = 255
        assert to_grayscale(rgba).max() == 0

    def test_invalid_type_raises(self):
        with pytest.raises(TypeError, match="Expected numpy.ndarray"):
            to_grayscale([[1, 2], [3, 4]])

    def test_empty_array_raises(self):
        with pytest.raises(ValueError):
            to_grayscale(np.array([]))

    def test_unsupported_channels_raises(self):
        with pytest.raises(ValueError, match="Unsupported number of channels"):
            to_grayscale(np.zeros((10, 10, 5), dtype=np.uint8))

    def test_sixteen_bit_input_is_rescaled_not_clipped(self):
        rgb = np.full((6, 6, 3), 80 * 257, dtype=np.uint16)
        rgb[2:4, 2:4] = 65535
        gray = to_grayscale(rgb)
        assert gray.dtype == np.uint8
        assert gray[0, 0] == 80
        assert gray[2, 2] == 255


class TestToUint8:
    def test_uint8_is_copied(self):
        img = np.full((3, 3), 9, dtype=np.uint8)
        result = to_uint8(img)
        assert result is not img
        assert np.array_equal(result, img)

    def test_uint16_scaled_by_dtype_range(self):
        img = np.array([[0, 257 * 128, 65535]], dtype=np.uint16)
        assert to_uint8(img).tolist() == [[0, 128, 255]]

    def test_signed_negatives_clipped(self):
        img = np.array([[-5, 0, 32767]], dtype=np.int16)
        assert to_uint8(img).tolist() == [[0, 0, 255]]

    def test_unit_float_scaled(self):
        img = np.array([[0.0, 0.5, 1.0]], dtype=np.float32)
        assert to_uint8(img).tolist() == [[0, 128, 255]]

    def test_wide_float_range_stretched(self):
        img = np.array([[-10.0, 0.0, 10.0]])
        assert to_uint8(img).tolist() == [[0, 128, 255]]

    def test_bool_mask(self):
        assert to_uint8(np.array([[True, False]])).tolist() == [[255, 0]]


class TestGaussianBlur:
    def test_uniform_image_unchanged(self):
        img = np.full((20, 20), 100, dtype=np.uint8)
        assert np.array_equal(gaussian_blur(img, 1.5), img)

    def test_smooths_single_spike(self):
        img = np.zeros((21, 21), dtype=np.uint8)
        img[10, 10] = 255
        blurred = gaussian_blur(img, 1.5)
        assert blurred[10, 10] < 255
        assert blurred[10, 11] > 0

    def test_non_positive_sigma_raises(self):
        with pytest.raises(ValueError, match="sigma"):
            gaussian_blur(np.zeros((5, 5), dtype=np.uint8), 0)


class TestDetectEdges:
    def test_step_edge_detected(self):
        img = np.zeros((40, 40), dtype=np.uint8)
        img[:, 20:] = 255
        edges = detect_edges(img, 50, 100)
        assert set(np.unique(edges)) <= {0, 255}
        assert edges[:, 18:22].any()
        assert not edges[:, :10].any()

    def test_flat_image_has_no_edges(self):
        assert not detect_edges(np.full((20, 20), 90, dtype=np.uint8), 50, 100).any()

    def test_requires_grayscale(self):
        with pytest.raises(ValueError, match="grayscale"):
            detect_edges(np.zeros((10, 10, 3), dtype=np.uint8), 50, 100)

    def test_inverted_thresholds_raise(self):
        with pytest.raises(ValueError, match="must not exceed"):
            detect_edges(np.zeros((10, 10), dtype=np.uint8), 100, 50)


class TestFitToSquare:
    def test_output_is_square_canvas(self):
        img = np.zeros((20, 40), dtype=np.uint8)
        result = fit_to_square(img, 100)
        assert result.shape == (100, 100)

    def test_aspect_ratio_preserved_with_white_padding(self):
        img = np.zeros((20, 40), dtype=np.uint8)
        result = fit_to_square(img, 100)
        # 40x20 scales to 100x50, centred vertically
        assert np.all(result[:25] == 255)
        assert np.all(result[75:] == 255)
        assert result[50, 50] == 0

    def test_keeps_channels(self):
        assert fit_to_square(np.zeros((10, 10, 3), dtype=np.uint8), 30).shape == (30, 30, 3)

    def test_invalid_target_size(self):
        with pytest.raises(ValueError):
            fit_to_square(np.zeros((10, 10), dtype=np.uint8), 0)
        with pytest.raises(TypeError):
            fit_to_square(np.zeros((10, 10), dtype=np.uint8), 10.5)


class TestSharpen:
    def test_flat_image_unchanged(self):
        img = np.full((10, 10), 120, dtype=np.uint8)
        assert np.array_equal(sharpen(img, 0.5), img)

    def test_border_pixels_copied(self):
        img = np.random.default_rng(0).integers(0, 256, (8, 8), dtype=np.uint8)
        result = sharpen(img, 0.5)
        assert np.array_equal(result[0], img[0])
        assert np.array_equal(result[:, -1], img[:, -1])

    def test_increases_local_contrast_with_clamping(self):
        img = np.full((5, 5), 100, dtype=np.uint8)
        img[2, 2] = 200
        result = sharpen(img, 1.0)
        # 200 * 5 - 4 * 100 = 600, clamped
        assert result[2, 2] == 255
        # 100 * 5 - (200 + 3 * 100) = 0
        assert result[1, 2] == 0

    def test_matches_four_neighbour_formula(self):
        img = np.random.default_rng(1).integers(0, 256, (9, 9), dtype=np.uint8)
        src = img.astype(np.float64)
        neighbours = src[:-2, 1:-1] + src[2:, 1:-1] + src[1:-1, :-2] + src[1:-1, 2:]
        expected = np.clip(src[1:-1, 1:-1] * 3.0 - neighbours * 0.5, 0, 255)
        result = sharpen(img, 0.5)
        assert np.abs(result[1:-1, 1:-1].astype(int) - expected.astype(int)).max() <= 1

    def test_does_not_mutate_input(self):
        img = np.full((5, 5), 100, dtype=np.uint8)
        img[2, 2] = 200
        before = img.copy()
        sharpen(img, 0.5)
        assert np.array_equal(img, before)

    def test_requires_grayscale(self):
        with pytest.raises(ValueError):
            sharpen(np.zeros((5, 5, 3), dtype=np.uint8), 0.5)
