import asyncio
import logging
import threading
from collections.abc import Callable

from PIL import Image

from capture_compare.core.comparison import compare
from capture_compare.core.errors import CompareError
from capture_compare.core.ocr_fusion import fuse
from capture_compare.core.quality_analyzer import QualityAnalyzer
from capture_compare.core.types import ComparisonReport, OCRResult
from capture_compare.providers.text_provider import RecognitionEngine
from capture_compare.utils.timings import measure_ms

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[ComparisonReport], None]


class CaptureJoin:
    """
    Two single-write result slots with an order-independent rendezvous.

    Whichever submit fills the last slot builds the report and fires the
    callback; it fires at most once and never after cancel().
    """

    def __init__(self, sources: tuple[str, str], on_complete: CompletionCallback | None = None) -> None:
        if len(sources) != 2 or sources[0] == sources[1]:
            raise CompareError('INVALID_SOURCES', f'Expected two distinct source labels, got {sources!r}.')
        self._sources = sources
        self._slots: dict[str, OCRResult | None] = {source: None for source in sources}
        self._on_complete = on_complete
        self._lock = threading.RLock()
        self._fired = False
        self._cancelled = False
        self.report: ComparisonReport | None = None

    @property
    def complete(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def submit(self, source: str, result: OCRResult) -> ComparisonReport | None:
        with self._lock:
            if self._cancelled:
                logger.info('Dropping result after cancel source=%s', source)
                return None
            if source not in self._slots:
                raise CompareError('UNKNOWN_SOURCE', f'Unknown capture source {source!r}.')
            if self._slots[source] is not None:
                raise CompareError('SLOT_ALREADY_FILLED', f'Result for {source!r} was already submitted.')
            self._slots[source] = result
            if self._fired or any(slot is None for slot in self._slots.values()):
                return None
            self._fired = True
            first, second = (self._slots[label] for label in self._sources)
            self.report = compare(first, second)
            logger.info(
                'Comparison ready winner=%s gap=%.4f',
                self.report.winner,
                self.report.score_gap,
            )
            # Held across the callback so a concurrent cancel() waits for it to finish.
            if self._on_complete is not None:
                self._on_complete(self.report)
            return self.report

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True


async def analyze_capture(
    image: Image.Image,
    source: str,
    engine: RecognitionEngine,
    analyzer: QualityAnalyzer | None = None,
) -> OCRResult:
    analyzer = analyzer or QualityAnalyzer()
    with measure_ms() as elapsed_ms:
        # CPU-bound; keep it off the event loop.
        metrics = await asyncio.to_thread(analyzer.analyze, image)
        try:
            detection = await engine.recognize(image)
        except Exception as exc:
            detection = exc
        return fuse(detection, metrics, source, elapsed_ms())


class ComparisonSession:
    """Owns one recognition engine for its lifetime and compares capture pairs with it."""

    def __init__(
        self,
        engine: RecognitionEngine,
        analyzer: QualityAnalyzer | None = None,
        primary_source: str = 'CameraX',
        secondary_source: str = 'Camera Intent',
    ) -> None:
        self.engine = engine
        self.analyzer = analyzer or QualityAnalyzer()
        self.primary_source = primary_source
        self.secondary_source = secondary_source
        self._closed = False

    async def __aenter__(self) -> 'ComparisonSession':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.engine.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise CompareError('SESSION_CLOSED', 'Comparison session is closed.')

    async def analyze(self, image: Image.Image, source: str) -> OCRResult:
        self._ensure_open()
        return await analyze_capture(image, source, self.engine, self.analyzer)

    async def run(
        self,
        primary_image: Image.Image,
        secondary_image: Image.Image,
        on_complete: CompletionCallback | None = None,
    ) -> ComparisonReport:
        self._ensure_open()
        join = CaptureJoin((self.primary_source, self.secondary_source), on_complete)

        async def _analyze_into_slot(image: Image.Image, source: str) -> None:
            result = await analyze_capture(image, source, self.engine, self.analyzer)
            join.submit(source, result)

        tasks = [
            asyncio.create_task(_analyze_into_slot(primary_image, self.primary_source)),
            asyncio.create_task(_analyze_into_slot(secondary_image, self.secondary_source)),
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            join.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if join.report is None:
            raise CompareError('COMPARISON_INCOMPLETE', 'Both captures finished without producing a report.', 500)
        return join.report
