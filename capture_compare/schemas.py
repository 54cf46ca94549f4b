from pydantic import BaseModel, Field


class QualityMetricsOut(BaseModel):
    sharpness: float = Field(ge=0.0, le=1.0)
    contrast: float = Field(ge=0.0, le=1.0)
    brightness: float = Field(ge=0.0, le=1.0)
    noise_level: float = Field(ge=0.0, le=1.0)
    resolution: int = Field(ge=0)


class OCRResultOut(BaseModel):
    source: str
    text_confidence: float = Field(ge=0.0, le=1.0)
    text_block_count: int = Field(ge=0)
    total_characters: int = Field(ge=0)
    readability_score: float = Field(ge=0.0)
    quality_metrics: QualityMetricsOut
    extracted_text: str
    processing_time_ms: int = Field(ge=0)
    error: str | None = None


class AnalyzeResponse(BaseModel):
    ok: bool = True
    model: str
    result: OCRResultOut


class SourceScoreOut(BaseModel):
    source: str
    overall_score: float


class MetricWinnersOut(BaseModel):
    text_detection: str
    confidence: str
    sharpness: str
    contrast: str
    readability: str


class TextSampleOut(BaseModel):
    source: str
    text: str
    truncated: bool


class ComparisonOut(BaseModel):
    ok: bool = True
    model: str
    winner: str
    runner_up: str
    winner_score: float
    runner_up_score: float
    score_gap: float = Field(ge=0.0)
    scores: list[SourceScoreOut]
    metric_winners: MetricWinnersOut
    results: list[OCRResultOut]
    text_samples: list[TextSampleOut] = []
    report_text: str


class HealthResponse(BaseModel):
    ok: bool
    version: str
    provider: str
    model: str | None = None
    recognizer_available: bool
    recognizer_message: str | None = None
    uptime_s: float


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str
    request_id: str | None = None
    details: dict | None = None
