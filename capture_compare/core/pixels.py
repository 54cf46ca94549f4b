import numpy as np
from PIL import Image

from capture_compare.core.errors import CompareError

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class PixelBuffer:
    """Rectangular 8-bit RGB(A) buffer stored as a flat row-major array plus stride."""

    def __init__(self, data, width: int, height: int, channels: int = 3, stride: int | None = None) -> None:
        if width < 1 or height < 1:
            raise CompareError(
                'INVALID_PIXEL_BUFFER',
                f'Pixel buffer dimensions must be positive, got {width}x{height}.',
                details={'width': width, 'height': height},
            )
        if channels not in (3, 4):
            raise CompareError(
                'INVALID_PIXEL_BUFFER',
                f'Unsupported channel count {channels}; expected 3 (RGB) or 4 (RGBA).',
                details={'channels': channels},
            )
        row_span = width * channels
        stride = row_span if stride is None else int(stride)
        if stride < row_span:
            raise CompareError(
                'INVALID_PIXEL_BUFFER',
                f'Stride {stride} is shorter than one row ({row_span} values).',
                details={'stride': stride, 'row_span': row_span},
            )

        if isinstance(data, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(data, dtype=np.uint8)
        else:
            flat = np.asarray(data, dtype=np.uint8).reshape(-1)
        required = (height - 1) * stride + row_span
        if flat.size < required:
            raise CompareError(
                'INVALID_PIXEL_BUFFER',
                f'Pixel buffer holds {flat.size} values, {required} required for {width}x{height}.',
                details={'size': int(flat.size), 'required': required},
            )

        self.width = int(width)
        self.height = int(height)
        self.channels = int(channels)
        self.stride = stride
        self._data = flat

    @classmethod
    def from_image(cls, image: Image.Image) -> 'PixelBuffer':
        if image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGB')
        array = np.asarray(image, dtype=np.uint8)
        height, width, channels = array.shape
        return cls(array.reshape(-1), width, height, channels=channels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'PixelBuffer':
        if array.ndim != 3:
            raise CompareError(
                'INVALID_PIXEL_BUFFER',
                f'Expected an HxWxC array, got shape {array.shape}.',
                details={'shape': list(array.shape)},
            )
        height, width, channels = array.shape
        return cls(np.ascontiguousarray(array, dtype=np.uint8).reshape(-1), width, height, channels=channels)

    def pixel(self, x: int, y: int) -> tuple[int, ...]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f'pixel ({x}, {y}) outside {self.width}x{self.height}')
        offset = y * self.stride + x * self.channels
        return tuple(int(value) for value in self._data[offset:offset + self.channels])

    def rgb(self) -> np.ndarray:
        span = self.height * self.stride
        rows = self._data[:span]
        if rows.size < span:
            # The final row may stop at its last pixel instead of a full stride.
            rows = np.pad(rows, (0, span - rows.size))
        plane = rows.reshape(self.height, self.stride)[:, : self.width * self.channels]
        return plane.reshape(self.height, self.width, self.channels)[:, :, :3]

    def luma(self) -> np.ndarray:
        rgb = self.rgb().astype(np.float64)
        red_w, green_w, blue_w = LUMA_WEIGHTS
        # Summed left to right so truncation matches a scalar per-pixel loop.
        return red_w * rgb[:, :, 0] + green_w * rgb[:, :, 1] + blue_w * rgb[:, :, 2]

    def grayscale(self) -> np.ndarray:
        return self.luma().astype(np.int64)
