import logging

from capture_compare.core.types import OCRResult, QualityMetrics, TextDetectionResult

logger = logging.getLogger(__name__)

CONFIDENCE_WEIGHT = 0.4
SHARPNESS_WEIGHT = 0.3
CONTRAST_WEIGHT = 0.2
TEXT_DENSITY_WEIGHT = 0.1
TEXT_DENSITY_SCALE = 1_000_000


def average_confidence(detection: TextDetectionResult) -> float:
    """Mean of reported element confidences; elements without one are skipped."""
    total = 0.0
    count = 0
    for element in detection.iter_elements():
        if element.confidence is None:
            continue
        total += element.confidence
        count += 1
    return total / count if count > 0 else 0.0


def text_density(total_characters: int, resolution: int) -> float:
    if resolution <= 0:
        return 0.0
    return min(total_characters / resolution * TEXT_DENSITY_SCALE, 1.0)


def readability_score(text_confidence: float, metrics: QualityMetrics, total_characters: int) -> float:
    return (
        CONFIDENCE_WEIGHT * text_confidence
        + SHARPNESS_WEIGHT * min(metrics.sharpness, 1.0)
        + CONTRAST_WEIGHT * min(metrics.contrast, 1.0)
        + TEXT_DENSITY_WEIGHT * text_density(total_characters, metrics.resolution)
    )


def fuse(
    detection: TextDetectionResult | BaseException,
    quality_metrics: QualityMetrics,
    source: str,
    elapsed_ms: int,
) -> OCRResult:
    """
    Combine recognizer output with quality metrics into one OCRResult.

    A recognizer failure (passed in as the exception) never raises here: the
    text fields and the readability score collapse to zero, and the quality
    metrics are kept as measured.
    """
    elapsed_ms = max(int(elapsed_ms), 0)

    if isinstance(detection, BaseException):
        logger.warning('Recognition failed source=%s error=%r', source, detection)
        return OCRResult(
            source=source,
            text_confidence=0.0,
            text_block_count=0,
            total_characters=0,
            readability_score=0.0,
            quality_metrics=quality_metrics,
            extracted_text='',
            processing_time_ms=elapsed_ms,
            error=f'{type(detection).__name__}: {detection}',
        )

    extracted_text = detection.full_text
    total_characters = len(extracted_text)
    confidence = average_confidence(detection)
    result = OCRResult(
        source=source,
        text_confidence=confidence,
        text_block_count=len(detection.blocks),
        total_characters=total_characters,
        readability_score=readability_score(confidence, quality_metrics, total_characters),
        quality_metrics=quality_metrics,
        extracted_text=extracted_text,
        processing_time_ms=elapsed_ms,
    )
    logger.info(
        'OCR fused source=%s blocks=%s chars=%s confidence=%.4f readability=%.4f elapsed_ms=%s',
        source,
        result.text_block_count,
        total_characters,
        confidence,
        result.readability_score,
        elapsed_ms,
    )
    return result
