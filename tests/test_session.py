import asyncio
import threading

import pytest
from PIL import Image

from capture_compare.core.errors import CompareError
from capture_compare.core.session import CaptureJoin, ComparisonSession, analyze_capture
from capture_compare.core.types import OCRResult, QualityMetrics, TextDetectionResult
from capture_compare.providers.text_provider import RecognitionEngine, StubRecognitionEngine


def make_result(source: str, confidence: float) -> OCRResult:
    return OCRResult(
        source=source,
        text_confidence=confidence,
        text_block_count=1,
        total_characters=10,
        readability_score=0.5,
        quality_metrics=QualityMetrics(sharpness=0.5, contrast=0.5, brightness=0.5, noise_level=0.1, resolution=100),
        extracted_text='x' * 10,
        processing_time_ms=1,
    )


class SizeFailingEngine(RecognitionEngine):
    """Fails for images of one size, succeeds with an empty result otherwise."""

    def __init__(self, failing_size: tuple[int, int]) -> None:
        super().__init__()
        self._failing_size = failing_size

    @property
    def model_id(self) -> str:
        return 'size-failing'

    async def _recognize(self, image: Image.Image) -> TextDetectionResult:
        if image.size == self._failing_size:
            raise RuntimeError('recognizer rejected image')
        return TextDetectionResult()


def test_join_fires_once_when_last_slot_fills_in_any_order():
    fired = []
    join = CaptureJoin(('CameraX', 'Camera Intent'), fired.append)

    assert join.submit('Camera Intent', make_result('Camera Intent', 0.4)) is None
    assert fired == []
    report = join.submit('CameraX', make_result('CameraX', 0.9))

    assert fired == [report]
    assert join.complete
    # Report keeps the declared source order, not completion order.
    assert [result.source for result in report.results] == ['CameraX', 'Camera Intent']
    assert report.winner == 'CameraX'


def test_join_rejects_double_write_and_unknown_source():
    join = CaptureJoin(('CameraX', 'Camera Intent'))
    join.submit('CameraX', make_result('CameraX', 0.9))

    with pytest.raises(CompareError) as excinfo:
        join.submit('CameraX', make_result('CameraX', 0.1))
    assert excinfo.value.code == 'SLOT_ALREADY_FILLED'

    with pytest.raises(CompareError) as excinfo:
        join.submit('Webcam', make_result('Webcam', 0.1))
    assert excinfo.value.code == 'UNKNOWN_SOURCE'


def test_join_requires_distinct_sources():
    with pytest.raises(CompareError):
        CaptureJoin(('CameraX', 'CameraX'))


def test_cancelled_join_never_fires():
    fired = []
    join = CaptureJoin(('CameraX', 'Camera Intent'), fired.append)
    join.submit('CameraX', make_result('CameraX', 0.9))

    join.cancel()

    assert join.submit('Camera Intent', make_result('Camera Intent', 0.4)) is None
    assert fired == []
    assert join.report is None


def test_callback_may_cancel_the_join_it_belongs_to():
    fired = []
    join = None

    def on_complete(report):
        fired.append(report)
        join.cancel()

    join = CaptureJoin(('CameraX', 'Camera Intent'), on_complete)
    join.submit('CameraX', make_result('CameraX', 0.9))
    report = join.submit('Camera Intent', make_result('Camera Intent', 0.4))

    assert fired == [report]
    assert join.cancelled


def test_cancel_waits_for_a_running_callback():
    fired = []
    cancel_thread = None

    def on_complete(report):
        nonlocal cancel_thread
        cancel_thread = threading.Thread(target=join.cancel)
        cancel_thread.start()
        cancel_thread.join(timeout=0.1)
        # cancel() cannot return while the callback is still running.
        assert cancel_thread.is_alive()
        assert not join.cancelled
        fired.append(report)

    join = CaptureJoin(('CameraX', 'Camera Intent'), on_complete)
    join.submit('CameraX', make_result('CameraX', 0.9))
    join.submit('Camera Intent', make_result('Camera Intent', 0.4))
    cancel_thread.join(timeout=5)

    assert not cancel_thread.is_alive()
    assert join.cancelled
    assert len(fired) == 1


def test_join_fires_exactly_once_under_concurrent_submits():
    for _ in range(50):
        fired = []
        join = CaptureJoin(('CameraX', 'Camera Intent'), fired.append)
        barrier = threading.Barrier(2)

        def worker(source: str, confidence: float) -> None:
            barrier.wait()
            join.submit(source, make_result(source, confidence))

        threads = [
            threading.Thread(target=worker, args=('CameraX', 0.9)),
            threading.Thread(target=worker, args=('Camera Intent', 0.4)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(fired) == 1


def test_session_compares_two_captures_and_closes_engine():
    engine = StubRecognitionEngine()
    fired = []

    async def scenario():
        async with ComparisonSession(engine) as session:
            return await session.run(
                Image.new('RGB', (64, 64), color='white'),
                Image.new('RGB', (32, 32), color='gray'),
                on_complete=fired.append,
            )

    report = asyncio.run(scenario())

    assert fired == [report]
    assert engine.calls == 2
    assert engine.closed
    assert [result.source for result in report.results] == ['CameraX', 'Camera Intent']
    assert all(result.text_block_count == 2 for result in report.results)


def test_session_absorbs_recognition_failure_for_one_source():
    engine = SizeFailingEngine(failing_size=(32, 32))

    async def scenario():
        async with ComparisonSession(engine, primary_source='A', secondary_source='B') as session:
            return await session.run(Image.new('RGB', (64, 64)), Image.new('RGB', (32, 32)))

    report = asyncio.run(scenario())

    failed = report.results[1]
    assert failed.source == 'B'
    assert failed.failed
    assert failed.total_characters == 0
    assert failed.quality_metrics.resolution == 32 * 32
    assert not report.results[0].failed


def test_cancelling_run_skips_callback_and_releases_engine():
    engine = StubRecognitionEngine(delay_s=30.0)
    fired = []

    async def scenario():
        async with ComparisonSession(engine) as session:
            task = asyncio.create_task(
                session.run(Image.new('RGB', (16, 16)), Image.new('RGB', (16, 16)), on_complete=fired.append)
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    asyncio.run(scenario())

    assert fired == []
    assert engine.closed


def test_closed_session_rejects_new_work():
    session = ComparisonSession(StubRecognitionEngine())

    async def scenario():
        await session.close()
        await session.close()
        await session.run(Image.new('RGB', (8, 8)), Image.new('RGB', (8, 8)))

    with pytest.raises(CompareError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.code == 'SESSION_CLOSED'


def test_analyze_capture_with_closed_engine_degrades():
    engine = StubRecognitionEngine()

    async def scenario():
        await engine.close()
        return await analyze_capture(Image.new('RGB', (20, 20), color='white'), 'CameraX', engine)

    result = asyncio.run(scenario())

    assert result.failed
    assert result.error.startswith('CompareError')
    assert result.processing_time_ms >= 0
    assert result.quality_metrics.resolution == 400
