"""
Image normalization functions used by the detection steps.

All functions are pure: they take an input and return a new output without
mutating the original array. This ensures predictable behavior and makes
testing straightforward.
"""

import numpy as np
import cv2


def _check_image(img: np.ndarray) -> None:
    if not isinstance(img, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(img).__name__}")

    if img.ndim < 2 or img.ndim > 3:
        raise ValueError(
            f"Image must be 2D or 3D array, got {img.ndim}D array with shape {img.shape}"
        )

    if img.size == 0:
        raise ValueError("Image array is empty")


def to_uint8(img: np.ndarray) -> np.ndarray:
    """Rescale an image of any depth to the 0-255 uint8 range.

    - uint8: returned as a copy
    - bool: True becomes 255
    - other integer types: scaled by ``255 / max`` of the dtype, negatives clipped
    - floats: [0, 1] images are scaled by 255, anything else is
      min-max stretched to [0, 255]

    Examples:
        >>> img = np.full((2, 2), 65535, dtype=np.uint16)
        >>> to_uint8(img)[0, 0]
        255
    """
    _check_image(img)

    if img.dtype == np.uint8:
        return img.copy()
    if img.dtype == np.bool_:
        return img.astype(np.uint8) * 255

    if np.issubdtype(img.dtype, np.integer):
        scale = 255.0 / np.iinfo(img.dtype).max
        scaled = img.astype(np.float64) * scale
    else:
        values = np.nan_to_num(img.astype(np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        if values.min() >= 0.0 and values.max() <= 1.0:
            scaled = values * 255.0
        else:
            scaled = cv2.normalize(values, None, 0.0, 255.0, cv2.NORM_MINMAX)

    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def to_grayscale(img: np.ndarray, dtype: np.dtype = np.uint8) -> np.ndarray:
    """Convert an image to grayscale.

    Pure function: returns a new array without modifying the input.

    Args:
        img: Input image. Can be:
             - RGB (3 channels): Will be converted to grayscale
             - RGBA (4 channels): Alpha channel is dropped, then converted
             - Grayscale (1 channel or 2D): Returns a copy with normalized dtype
        dtype: Output dtype. Default is uint8 for CV2 compatibility.
               Higher-depth input is rescaled with to_uint8 first.

    Returns:
        Grayscale image as 2D numpy array with the specified dtype.

    Raises:
        ValueError: If input is not a valid image array.
        TypeError: If img is not a numpy array.

    Examples:
        >>> rgb = np.zeros((100, 200, 3), dtype=np.uint8)
        >>> gray = to_grayscale(rgb)
        >>> gray.shape
        (100, 200)
    """
    _check_image(img)

    if dtype == np.uint8 and img.dtype != np.uint8:
        img = to_uint8(img)

    if img.ndim == 2:
        result = img.copy()
    else:
        channels = img.shape[2]
        if channels == 1:
            result = img[:, :, 0].copy()
        elif channels == 3:
            result = cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)
        elif channels == 4:
            result = cv2.cvtColor(img[:, :, :3], cv2.COLOR_RGB2GRAY)
        else:
            raise ValueError(
                f"Unsupported number of channels: {channels}. "
                "Expected 1, 3 (RGB), or 4 (RGBA)."
            )

    if result.dtype != dtype:
        if np.issubdtype(dtype, np.integer):
            # For integer types, clip to valid range
            info = np.iinfo(dtype)
            result = np.clip(result, info.min, info.max).astype(dtype)
        else:
            result = result.astype(dtype)

    return result


def gaussian_blur(img: np.ndarray, sigma: float) -> np.ndarray:
    """Blur an image with a Gaussian kernel of standard deviation ``sigma``.

    The kernel size is derived from sigma by OpenCV.

    Raises:
        ValueError: If sigma is not positive.
    """
    _check_image(img)
    if sigma <= 0:
        raise ValueError(f"sigma must be positive, got {sigma}")
    return cv2.GaussianBlur(img, (0, 0), sigmaX=sigma, sigmaY=sigma)


def detect_edges(img: np.ndarray, low_threshold: float, high_threshold: float) -> np.ndarray:
    """Run the Canny edge detector on a grayscale image.

    Returns:
        Binary uint8 image, 255 on edge pixels and 0 elsewhere.

    Raises:
        ValueError: If the image is not grayscale or thresholds are inverted.
    """
    _check_image(img)
    if img.ndim != 2:
        raise ValueError(
            f"Edge detection requires grayscale input (2D array), "
            f"got {img.ndim}D array with shape {img.shape}"
        )
    if low_threshold > high_threshold:
        raise ValueError(
            f"low_threshold ({low_threshold}) must not exceed high_threshold ({high_threshold})"
        )
    return cv2.Canny(img.astype(np.uint8, copy=False), low_threshold, high_threshold)


def fit_to_square(img: np.ndarray, target_size: int, fill: int = 255) -> np.ndarray:
    """Scale an image to fit a square canvas, preserving aspect ratio.

    The scaled image is centred on a ``target_size`` x ``target_size``
    canvas filled with ``fill``. Upscaling uses cubic interpolation.

    Examples:
        >>> img = np.zeros((20, 40), dtype=np.uint8)
        >>> fit_to_square(img, 100).shape
        (100, 100)
    """
    _check_image(img)
    if not isinstance(target_size, int):
        raise TypeError(f"target_size must be int, got {type(target_size).__name__}")
    if target_size <= 0:
        raise ValueError(f"target_size must be positive, got {target_size}")

    height, width = img.shape[:2]
    scale = min(target_size / width, target_size / height)
    scaled_w = max(1, min(target_size, int(width * scale)))
    scaled_h = max(1, min(target_size, int(height * scale)))

    interpolation = cv2.INTER_CUBIC if scale > 1.0 else cv2.INTER_AREA
    scaled = cv2.resize(img, (scaled_w, scaled_h), interpolation=interpolation)

    canvas = np.full((target_size, target_size) + img.shape[2:], fill, dtype=img.dtype)
    offset_x = (target_size - scaled_w) // 2
    offset_y = (target_size - scaled_h) // 2
    canvas[offset_y:offset_y + scaled_h, offset_x:offset_x + scaled_w] = scaled
    return canvas


def sharpen(img: np.ndarray, strength: float) -> np.ndarray:
    """Sharpen a grayscale image with a 4-neighbour Laplacian kernel.

    Each interior pixel becomes ``c * (1 + 4s) - s * (top + bottom + left + right)``,
    clamped to [0, 255]. Border pixels are copied unchanged.
    """
    _check_image(img)
    if img.ndim != 2:
        raise ValueError(f"Sharpening requires grayscale input, got shape {img.shape}")
    if img.shape[0] < 3 or img.shape[1] < 3:
        return img.copy()

    kernel = np.array(
        [
            [0.0, -strength, 0.0],
            [-strength, 1.0 + 4.0 * strength, -strength],
            [0.0, -strength, 0.0],
        ],
        dtype=np.float32,
    )
    filtered = cv2.filter2D(img.astype(np.float32), cv2.CV_32F, kernel)

    result = img.copy()
    result[1:-1, 1:-1] = np.clip(filtered[1:-1, 1:-1], 0, 255).astype(img.dtype)
    return result
