from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class QualityMetrics:
    sharpness: float
    contrast: float
    brightness: float
    noise_level: float
    resolution: int


@dataclass(frozen=True)
class TextElement:
    text: str
    # None means the recognizer did not report a confidence for this element.
    confidence: float | None = None


@dataclass(frozen=True)
class TextLine:
    elements: tuple[TextElement, ...] = ()

    @property
    def text(self) -> str:
        return ' '.join(element.text for element in self.elements)


@dataclass(frozen=True)
class TextBlock:
    lines: tuple[TextLine, ...] = ()

    @property
    def text(self) -> str:
        return '\n'.join(line.text for line in self.lines)


@dataclass(frozen=True)
class TextDetectionResult:
    blocks: tuple[TextBlock, ...] = ()
    text: str | None = None

    @property
    def full_text(self) -> str:
        if self.text is not None:
            return self.text
        return '\n'.join(block.text for block in self.blocks)

    def iter_elements(self):
        for block in self.blocks:
            for line in block.lines:
                yield from line.elements


@dataclass(frozen=True)
class OCRResult:
    source: str
    text_confidence: float
    text_block_count: int
    total_characters: int
    readability_score: float
    quality_metrics: QualityMetrics
    extracted_text: str
    processing_time_ms: int
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MetricWinners:
    text_detection: str
    confidence: str
    sharpness: str
    contrast: str
    readability: str


@dataclass(frozen=True)
class TextSample:
    source: str
    text: str
    truncated: bool


@dataclass(frozen=True)
class ComparisonReport:
    results: tuple[OCRResult, OCRResult]
    scores: tuple[float, float]
    winner_index: int
    metric_winners: MetricWinners
    text_samples: tuple[TextSample, ...] = ()

    @property
    def winner(self) -> str:
        return self.results[self.winner_index].source

    @property
    def runner_up(self) -> str:
        return self.results[1 - self.winner_index].source

    @property
    def winner_score(self) -> float:
        return self.scores[self.winner_index]

    @property
    def runner_up_score(self) -> float:
        return self.scores[1 - self.winner_index]

    @property
    def score_gap(self) -> float:
        return abs(self.scores[0] - self.scores[1])

    def to_dict(self) -> dict:
        return {
            'winner': self.winner,
            'runner_up': self.runner_up,
            'winner_score': self.winner_score,
            'runner_up_score': self.runner_up_score,
            'score_gap': self.score_gap,
            'scores': [
                {'source': result.source, 'overall_score': score}
                for result, score in zip(self.results, self.scores)
            ],
            'metric_winners': asdict(self.metric_winners),
            'results': [result.to_dict() for result in self.results],
            'text_samples': [asdict(sample) for sample in self.text_samples],
        }
