"""
Image quality measurement.

Computes four perceptual metrics straight from pixel data:
- Sharpness: mean squared Laplacian response over the interior
- Contrast: (max luma - min luma) / max luma
- Brightness: mean luma / 255
- Noise level: mean 5x5 local variance

plus the unnormalized resolution (width * height).
"""

import logging

import numpy as np
from PIL import Image

from capture_compare.core.errors import CompareError
from capture_compare.core.pixels import PixelBuffer
from capture_compare.core.types import QualityMetrics

logger = logging.getLogger(__name__)

SHARPNESS_SCALE = 10000.0
NOISE_SCALE = 10000.0
NOISE_WINDOW = 5


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def to_pixel_buffer(pixels, width: int | None = None, height: int | None = None, channels: int = 3) -> PixelBuffer:
    if isinstance(pixels, PixelBuffer):
        buffer = pixels
    elif isinstance(pixels, Image.Image):
        buffer = PixelBuffer.from_image(pixels)
    elif isinstance(pixels, np.ndarray) and pixels.ndim == 3:
        buffer = PixelBuffer.from_array(pixels)
    else:
        if width is None or height is None:
            raise CompareError('INVALID_PIXEL_BUFFER', 'width and height are required for a flat pixel buffer.')
        return PixelBuffer(pixels, width, height, channels=channels)

    if (width is not None and width != buffer.width) or (height is not None and height != buffer.height):
        raise CompareError(
            'INVALID_PIXEL_BUFFER',
            f'Declared size {width}x{height} does not match buffer size {buffer.width}x{buffer.height}.',
        )
    return buffer


class QualityAnalyzer:
    """
    Deterministic image quality analyzer.

    Sizes too small for a metric are not errors: sharpness needs at least 3x3
    pixels and noise needs more than 10x10, otherwise that metric is 0.
    """

    def analyze(self, pixels, width: int | None = None, height: int | None = None, channels: int = 3) -> QualityMetrics:
        """
        Args:
            pixels: PixelBuffer, Pillow image, HxWxC array, or a flat RGB(A) sequence
            width, height: required for flat sequences, checked otherwise
            channels: 3 or 4 for flat sequences

        Returns:
            QualityMetrics for the image
        """
        buffer = to_pixel_buffer(pixels, width, height, channels)
        luma = buffer.luma()
        gray = luma.astype(np.int64)

        metrics = QualityMetrics(
            sharpness=self._calculate_sharpness(gray),
            contrast=self._calculate_contrast(luma),
            brightness=self._calculate_brightness(luma),
            noise_level=self._calculate_noise_level(gray),
            resolution=buffer.width * buffer.height,
        )
        logger.debug(
            'quality width=%s height=%s sharpness=%.4f contrast=%.4f brightness=%.4f noise=%.4f',
            buffer.width,
            buffer.height,
            metrics.sharpness,
            metrics.contrast,
            metrics.brightness,
            metrics.noise_level,
        )
        return metrics

    def _calculate_sharpness(self, gray: np.ndarray) -> float:
        """Mean squared response of the 4-neighbour Laplacian over interior pixels."""
        height, width = gray.shape
        if width < 3 or height < 3:
            return 0.0

        center = gray[1:-1, 1:-1]
        response = 4 * center - gray[:-2, 1:-1] - gray[2:, 1:-1] - gray[1:-1, :-2] - gray[1:-1, 2:]
        variance = float(np.square(response).sum()) / ((width - 2) * (height - 2))
        return _clamp01(variance / SHARPNESS_SCALE)

    def _calculate_contrast(self, luma: np.ndarray) -> float:
        max_luma = float(luma.max())
        min_luma = float(luma.min())
        if max_luma <= 0:
            return 0.0
        return _clamp01((max_luma - min_luma) / max_luma)

    def _calculate_brightness(self, luma: np.ndarray) -> float:
        return _clamp01(float(luma.mean()) / 255.0)

    def _calculate_noise_level(self, gray: np.ndarray) -> float:
        """
        Average local variance of 5x5 windows.

        Window centres keep a margin of one full window width from every edge,
        so images need more than 10 pixels in each direction.
        """
        height, width = gray.shape
        margin = NOISE_WINDOW
        if width <= 2 * margin or height <= 2 * margin:
            return 0.0

        values = gray.astype(np.float64)
        window_sum = self._box_sums(values)
        window_sq_sum = self._box_sums(values * values)

        # Box sums are indexed by window top-left; a centre at c starts at c - 2.
        half = NOISE_WINDOW // 2
        rows = slice(margin - half, height - margin - half)
        cols = slice(margin - half, width - margin - half)
        count = NOISE_WINDOW * NOISE_WINDOW
        mean = window_sum[rows, cols] / count
        local_variance = window_sq_sum[rows, cols] / count - mean * mean

        avg_variance = float(local_variance.sum()) / ((width - 2 * margin) * (height - 2 * margin))
        return _clamp01(avg_variance / NOISE_SCALE)

    @staticmethod
    def _box_sums(values: np.ndarray) -> np.ndarray:
        integral = np.zeros((values.shape[0] + 1, values.shape[1] + 1), dtype=np.float64)
        np.cumsum(np.cumsum(values, axis=0), axis=1, out=integral[1:, 1:])
        size = NOISE_WINDOW
        return integral[size:, size:] - integral[:-size, size:] - integral[size:, :-size] + integral[:-size, :-size]
