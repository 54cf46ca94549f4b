from capture_compare.core.types import ComparisonReport, MetricWinners, OCRResult, TextSample

CONFIDENCE_WEIGHT = 0.3
SHARPNESS_WEIGHT = 0.25
CONTRAST_WEIGHT = 0.2
READABILITY_WEIGHT = 0.15
TEXT_DETECTION_WEIGHT = 0.1
TEXT_DETECTION_CAP = 1000
SAMPLE_LENGTH = 100
ELLIPSIS = '...'

RECOMMENDATIONS = {
    'primary': (
        'Use {winner} for better OCR results',
        '{winner} provides more consistent image quality',
        'Better manual control leads to optimal OCR conditions',
    ),
    'secondary': (
        '{winner} produced better OCR results',
        "Device's camera app may have better auto-optimization",
        'Consider using {winner} for text capture scenarios',
    ),
}


def overall_score(result: OCRResult) -> float:
    metrics = result.quality_metrics
    normalized_text_detection = min(result.total_characters / TEXT_DETECTION_CAP, 1.0)
    return (
        CONFIDENCE_WEIGHT * result.text_confidence
        + SHARPNESS_WEIGHT * min(metrics.sharpness, 1.0)
        + CONTRAST_WEIGHT * min(metrics.contrast, 1.0)
        + READABILITY_WEIGHT * result.readability_score
        + TEXT_DETECTION_WEIGHT * normalized_text_detection
    )


def text_sample(result: OCRResult, limit: int = SAMPLE_LENGTH) -> TextSample | None:
    text = result.extracted_text
    if not text:
        return None
    truncated = len(text) > limit
    return TextSample(source=result.source, text=text[:limit] + (ELLIPSIS if truncated else ''), truncated=truncated)


def _pick(first: OCRResult, second: OCRResult, first_value: float, second_value: float) -> str:
    # Strict greater-than: ties go to the second result.
    return first.source if first_value > second_value else second.source


def compare(first: OCRResult, second: OCRResult) -> ComparisonReport:
    first_score = overall_score(first)
    second_score = overall_score(second)
    winner_index = 0 if first_score > second_score else 1

    metric_winners = MetricWinners(
        text_detection=_pick(first, second, first.total_characters, second.total_characters),
        confidence=_pick(first, second, first.text_confidence, second.text_confidence),
        sharpness=_pick(first, second, first.quality_metrics.sharpness, second.quality_metrics.sharpness),
        contrast=_pick(first, second, first.quality_metrics.contrast, second.quality_metrics.contrast),
        readability=_pick(first, second, first.readability_score, second.readability_score),
    )
    samples = tuple(sample for sample in (text_sample(first), text_sample(second)) if sample is not None)
    return ComparisonReport(
        results=(first, second),
        scores=(first_score, second_score),
        winner_index=winner_index,
        metric_winners=metric_winners,
        text_samples=samples,
    )


def format_number(value: float) -> str:
    """At most two decimals, trailing zeros dropped (0.5 -> '0.5', 0.10 -> '0.1')."""
    text = f'{value:.2f}'.rstrip('0').rstrip('.')
    return '0' if text in ('', '-0') else text


def _percent(value: float) -> str:
    return f'{format_number(value * 100)}%'


def render_report(report: ComparisonReport) -> str:
    first, second = report.results
    winners = report.metric_winners
    lines: list[str] = [
        'OCR QUALITY ANALYSIS & RANKING',
        '=' * 50,
        '',
        f'OVERALL WINNER FOR OCR: {report.winner}',
        f'Score Difference: {format_number(report.score_gap)}',
        '',
        'DETAILED COMPARISON:',
        '',
        'Text Detection Results:',
    ]
    for result in report.results:
        lines.append(f'- {result.source}: {result.text_block_count} text blocks, {result.total_characters} chars')
    lines += [f'Winner: {winners.text_detection} (More text detected)', '', 'Confidence Scores:']
    for result in report.results:
        lines.append(f'- {result.source}: {_percent(result.text_confidence)}')
    lines += [f'Winner: {winners.confidence}', '', 'Image Quality Metrics:']
    for result in report.results:
        lines.append(f'- {result.source} Sharpness: {format_number(result.quality_metrics.sharpness)}')
    lines += [f'Winner: {winners.sharpness}', '']
    for result in report.results:
        lines.append(f'- {result.source} Contrast: {format_number(result.quality_metrics.contrast)}')
    lines += [f'Winner: {winners.contrast}', '', 'Readability Scores:']
    for result in report.results:
        lines.append(f'- {result.source}: {_percent(result.readability_score)}')
    lines += [
        f'Winner: {winners.readability}',
        '',
        'FINAL RANKING:',
        f'1st Place: {report.winner} (Score: {format_number(report.winner_score)})',
        f'2nd Place: {report.runner_up} (Score: {format_number(report.runner_up_score)})',
        '',
        'RECOMMENDATIONS FOR OCR:',
    ]
    tone = 'primary' if report.winner_index == 0 else 'secondary'
    lines += [f'- {line.format(winner=report.winner)}' for line in RECOMMENDATIONS[tone]]

    for sample in report.text_samples:
        lines += ['', f'Sample Extracted Text ({sample.source}):', f'"{sample.text}"']

    failed = [result for result in (first, second) if result.failed]
    if failed:
        lines += ['', 'Recognition Errors:']
        lines += [f'- {result.source}: {result.error}' for result in failed]
    return '\n'.join(lines) + '\n'
