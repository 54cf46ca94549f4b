import io

import httpx
from PIL import Image

from capture_compare.core.types import TextDetectionResult
from capture_compare.providers.text_provider import RecognitionEngine, build_result


def _join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _parse_confidence(raw) -> float | None:
    if raw is None:
        return None
    try:
        conf = float(raw)
    except (TypeError, ValueError):
        return None
    return max(0.0, min(1.0, conf))


def parse_remote_payload(body: dict) -> TextDetectionResult:
    rows = []
    for block in body.get('blocks') or []:
        lines = []
        for line in block.get('lines') or []:
            elements = []
            for element in line.get('elements') or []:
                text = str(element.get('text') or '')
                if not text:
                    continue
                elements.append((text, _parse_confidence(element.get('confidence'))))
            lines.append(elements)
        rows.append(lines)
    result = build_result(rows)
    text = body.get('text')
    return TextDetectionResult(blocks=result.blocks, text=str(text) if text is not None else None)


class RemoteRecognitionEngine(RecognitionEngine):
    def __init__(
        self,
        base_url: str = 'http://127.0.0.1:5000',
        recognize_path: str = '/ocr/recognize',
        timeout_ms: int = 12000,
    ) -> None:
        super().__init__()
        self._url = _join_url(base_url, recognize_path)
        self._timeout = max(int(timeout_ms), 1000) / 1000.0
        self._client: httpx.AsyncClient | None = None

    @property
    def model_id(self) -> str:
        return 'remote-ocr'

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _recognize(self, image: Image.Image) -> TextDetectionResult:
        payload = io.BytesIO()
        image.convert('RGB').save(payload, format='JPEG', quality=92)

        response = await self._get_client().post(
            self._url,
            files={'image': ('capture.jpg', payload.getvalue(), 'image/jpeg')},
        )
        response.raise_for_status()
        return parse_remote_payload(response.json())

    async def _release(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
