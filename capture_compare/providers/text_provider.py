import asyncio
import logging
import shutil
from abc import ABC, abstractmethod

from PIL import Image

from capture_compare.config import Settings
from capture_compare.core.errors import CompareError
from capture_compare.core.types import TextBlock, TextDetectionResult, TextElement, TextLine

logger = logging.getLogger(__name__)


class RecognitionEngine(ABC):
    """Asynchronous text recognizer: one result or one exception per call."""

    def __init__(self) -> None:
        self._closed = False

    @abstractmethod
    async def _recognize(self, image: Image.Image) -> TextDetectionResult:
        raise NotImplementedError

    @property
    @abstractmethod
    def model_id(self) -> str:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return self._closed

    def status(self) -> dict:
        return {'available': not self._closed, 'message': 'closed' if self._closed else None}

    async def recognize(self, image: Image.Image) -> TextDetectionResult:
        if self._closed:
            raise CompareError('RECOGNIZER_CLOSED', f'Recognition engine {self.model_id} is closed.')
        return await self._recognize(image)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._release()
        logger.info('Recognition engine closed model=%s', self.model_id)

    async def _release(self) -> None:
        return None


def build_result(rows: list[list[list[tuple[str, float | None]]]]) -> TextDetectionResult:
    """Blocks -> lines -> (text, confidence) pairs into a TextDetectionResult."""
    return TextDetectionResult(
        blocks=tuple(
            TextBlock(
                lines=tuple(
                    TextLine(elements=tuple(TextElement(text=text, confidence=conf) for text, conf in line))
                    for line in block
                )
            )
            for block in rows
        )
    )


DEFAULT_STUB_BLOCKS = [
    [[('INVOICE', 0.97), ('#1042', 0.91)], [('Date:', 0.88), ('2025-06-26', 0.84)]],
    [[('Total', 0.93), ('KES', 0.9), ('1,250.00', 0.86)]],
]


class StubRecognitionEngine(RecognitionEngine):
    def __init__(
        self,
        blocks: list[list[list[tuple[str, float | None]]]] | None = None,
        fail_with: BaseException | None = None,
        delay_s: float = 0.0,
        model_id: str = 'stub-ocr-v1',
    ) -> None:
        super().__init__()
        self._result = build_result(DEFAULT_STUB_BLOCKS if blocks is None else blocks)
        self._fail_with = fail_with
        self._delay_s = max(0.0, float(delay_s))
        self._model_id = model_id
        self.calls = 0

    @property
    def model_id(self) -> str:
        return self._model_id

    async def _recognize(self, image: Image.Image) -> TextDetectionResult:
        self.calls += 1
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if self._fail_with is not None:
            raise self._fail_with
        return self._result


def _tesseract_confidence(raw) -> float | None:
    try:
        conf = float(raw)
    except (TypeError, ValueError):
        return None
    if conf < 0:
        return None
    return max(0.0, min(1.0, conf / 100.0))


def parse_tesseract_data(data: dict) -> TextDetectionResult:
    """Group pytesseract image_to_data words into blocks and lines, keeping reading order."""
    blocks: dict[int, dict[tuple[int, int], list[tuple[str, float | None]]]] = {}
    n = len(data.get('text', []))
    for i in range(n):
        text = (data['text'][i] or '').strip()
        if not text:
            continue
        block_num = int(data.get('block_num', [0] * n)[i])
        line_key = (int(data.get('par_num', [0] * n)[i]), int(data.get('line_num', [0] * n)[i]))
        lines = blocks.setdefault(block_num, {})
        lines.setdefault(line_key, []).append((text, _tesseract_confidence(data.get('conf', [-1] * n)[i])))
    return build_result([list(lines.values()) for lines in blocks.values()])


class TesseractRecognitionEngine(RecognitionEngine):
    def __init__(self, config: str = '--oem 3 --psm 3', lang: str = 'eng') -> None:
        super().__init__()
        self._config = config
        self._lang = lang
        self._available = shutil.which('tesseract') is not None
        self._message = None if self._available else 'tesseract binary not found in PATH'

    @property
    def model_id(self) -> str:
        return 'tesseract-ocr'

    def status(self) -> dict:
        if self._closed:
            return super().status()
        return {'available': self._available, 'message': self._message}

    def _run(self, image: Image.Image) -> TextDetectionResult:
        import pytesseract

        data = pytesseract.image_to_data(
            image.convert('RGB'),
            lang=self._lang,
            config=self._config,
            output_type=pytesseract.Output.DICT,
        )
        return parse_tesseract_data(data)

    async def _recognize(self, image: Image.Image) -> TextDetectionResult:
        if not self._available:
            raise CompareError('RECOGNIZER_UNAVAILABLE', self._message or 'tesseract unavailable')
        return await asyncio.to_thread(self._run, image)


def create_recognition_engine(settings: Settings) -> RecognitionEngine:
    provider = settings.text_provider.strip().lower()
    if provider == 'stub':
        return StubRecognitionEngine()
    if provider == 'tesseract':
        return TesseractRecognitionEngine(config=settings.tesseract_config, lang=settings.tesseract_lang)
    if provider == 'remote':
        from capture_compare.providers.remote_provider import RemoteRecognitionEngine

        return RemoteRecognitionEngine(
            base_url=settings.remote_base_url,
            recognize_path=settings.remote_recognize_path,
            timeout_ms=settings.remote_timeout_ms,
        )
    raise CompareError('UNSUPPORTED_PROVIDER', f'Unsupported TEXT_PROVIDER={settings.text_provider!r}')
