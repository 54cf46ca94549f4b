from io import BytesIO

from fastapi.testclient import TestClient
from PIL import Image, ImageDraw

from capture_compare.main import app


def make_test_image_bytes(size=(120, 80), color='white', with_text=False) -> bytes:
    image = Image.new('RGB', size, color=color)
    if with_text:
        ImageDraw.Draw(image).text((10, 30), 'TOTAL 12.50', fill='black')
    buf = BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


def test_health_ok():
    with TestClient(app) as client:
        response = client.get('/health')
    assert response.status_code == 200
    body = response.json()
    assert body['ok'] is True
    assert body['recognizer_available'] is True


def test_analyze_returns_ocr_result():
    with TestClient(app) as client:
        response = client.post(
            '/analyze',
            files={'image': ('capture.png', make_test_image_bytes(with_text=True), 'image/png')},
            data={'source': 'CameraX'},
        )
    assert response.status_code == 200
    result = response.json()['result']
    assert result['source'] == 'CameraX'
    assert result['quality_metrics']['resolution'] == 120 * 80
    assert 0.0 <= result['quality_metrics']['sharpness'] <= 1.0
    assert result['text_block_count'] >= 0


def test_compare_returns_structured_and_rendered_report():
    with TestClient(app) as client:
        response = client.post(
            '/compare',
            files={
                'primary': ('primary.png', make_test_image_bytes(with_text=True), 'image/png'),
                'secondary': ('secondary.png', make_test_image_bytes(color='gray'), 'image/png'),
            },
        )
    assert response.status_code == 200
    body = response.json()
    assert body['winner'] in {'CameraX', 'Camera Intent'}
    assert [row['source'] for row in body['scores']] == ['CameraX', 'Camera Intent']
    assert len(body['results']) == 2
    assert set(body['metric_winners']) == {'text_detection', 'confidence', 'sharpness', 'contrast', 'readability'}
    assert 'FINAL RANKING:' in body['report_text']
    assert body['score_gap'] >= 0.0


def test_empty_upload_is_rejected():
    with TestClient(app) as client:
        response = client.post('/analyze', files={'image': ('empty.png', b'', 'image/png')})
    assert response.status_code == 400
    assert response.json()['error'] == 'MISSING_IMAGE'


def test_undecodable_upload_is_rejected():
    with TestClient(app) as client:
        response = client.post(
            '/compare',
            files={
                'primary': ('primary.png', make_test_image_bytes(), 'image/png'),
                'secondary': ('secondary.png', b'not an image', 'image/png'),
            },
        )
    assert response.status_code == 400
    assert response.json()['error'] == 'IMAGE_DECODE_FAILED'
