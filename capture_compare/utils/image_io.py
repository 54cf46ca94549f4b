from io import BytesIO

from PIL import Image

from capture_compare.core.errors import CompareError


def _decode(stream, label: str) -> Image.Image:
    try:
        image = Image.open(stream)
        image.load()
    except Exception as exc:
        raise CompareError('IMAGE_DECODE_FAILED', f'Could not decode image {label}.', status_code=400) from exc

    if image.mode not in ('RGB', 'RGBA'):
        image = image.convert('RGB')
    return image


def load_image_from_bytes(image_bytes: bytes, max_bytes: int, field: str = 'image') -> Image.Image:
    if not image_bytes:
        raise CompareError('MISSING_IMAGE', f'Missing image upload (field name: {field}).', status_code=400)
    if len(image_bytes) > max_bytes:
        raise CompareError(
            'IMAGE_TOO_LARGE',
            f'Image too large. Max {max_bytes} bytes.',
            status_code=413,
            details={'field': field, 'size': len(image_bytes)},
        )
    return _decode(BytesIO(image_bytes), f'(field name: {field})')
