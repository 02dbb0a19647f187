import asyncio, threading, time

import cv2, numpy as np
from fastapi.testclient import TestClient

from core.config import Settings
from core.errors import DetectionFailure, InitError
from core.symmetry import symmetry_score
from main import create_app
from conftest import FakeProvider, png_bytes


def make_client(provider, start=True):
  app = create_app(provider=provider, settings=Settings())
  if start:
    asyncio.run(app.state.orchestrator.start())
  return TestClient(app)


def upload(client, data=None, name='face.png', ctype='image/png', url='/api/analyze'):
  return client.post(url, files={'file': (name, data if data is not None else png_bytes(), ctype)})


def test_health():
  with make_client(FakeProvider()) as client:
    r = client.get('/')
    assert r.status_code == 200
    assert r.json()['phase'] == 'idle'


def test_analyze_detected(face):
  provider = FakeProvider(faces=[face])
  with make_client(provider) as client:
    r = upload(client)
    assert r.status_code == 200
    body = r.json()
    assert body['phase'] == 'detected'
    assert body['score'] == symmetry_score(face.landmarks)
    assert body['score_label'] == f'Symmetry Score: {body["score"]}%'
    assert body['error'] is None
    assert body['faces'] == 1
    assert len(body['details']['pairs']) == 13
    assert len(body['details']['landmarks']) == 68
    assert body['details']['box'] == {'x': 10, 'y': 10, 'w': 100, 'h': 100}
    assert len(provider.draw_calls) == 1

    img = client.get(body['image_url'])
    assert img.status_code == 200
    assert img.headers['content-type'] == 'image/png'
    assert img.headers['x-content-type-options'] == 'nosniff'
    shown = cv2.imdecode(np.frombuffer(img.content, np.uint8), cv2.IMREAD_COLOR)
    assert shown.shape == (90, 120, 3)
    ov = client.get(body['overlay_url'])
    assert ov.status_code == 200
    assert ov.headers['content-type'] == 'image/png'
    canvas = cv2.imdecode(np.frombuffer(ov.content, np.uint8), cv2.IMREAD_UNCHANGED)
    assert canvas.shape == (90, 120, 4)


def test_analyze_no_face():
  with make_client(FakeProvider(faces=[])) as client:
    r = upload(client)
    assert r.status_code == 422
    body = r.json()
    assert body['error'] == 'No face detected in the image. Please try another photo.'
    assert body['score'] is None
    assert body['overlay_url'] is None
    assert client.get('/api/overlay').status_code == 404


def test_analyze_processing_failure():
  with make_client(FakeProvider(error=DetectionFailure('boom'))) as client:
    r = upload(client)
    assert r.status_code == 500
    assert r.json()['error'] == 'Error processing image. Please try again.'


def test_analyze_without_file():
  with make_client(FakeProvider()) as client:
    r = client.post('/api/analyze')
    assert r.status_code == 400
    assert r.json()['error'] == 'Error uploading image. Please try again.'


def test_analyze_rejects_non_image():
  with make_client(FakeProvider()) as client:
    r = upload(client, b'notanimage', name='bad.txt', ctype='text/plain')
    assert r.status_code == 400


def test_uploads_refused_while_models_load(gate, face):
  provider = FakeProvider(faces=[face], gate=gate)
  with make_client(provider, start=False) as client:
    state = client.get('/api/state').json()
    assert state['loading'] is True
    assert state['upload_enabled'] is False
    assert upload(client).status_code == 503
    page = client.get('/app').text
    assert 'Loading face detection models...' in page
    assert 'type="file"' not in page

    gate.set()
    for _ in range(100):
      if client.get('/api/state').json()['phase'] != 'models_loading':
        break
      time.sleep(0.02)
    assert client.get('/api/state').json()['upload_enabled'] is True
    assert upload(client).status_code == 200


def test_model_failure_is_persistent():
  with make_client(FakeProvider(init_error=InitError('missing')), start=False) as client:
    for _ in range(100):
      if client.get('/api/state').json()['phase'] != 'models_loading':
        break
      time.sleep(0.02)
    state = client.get('/api/state').json()
    assert state['phase'] == 'models_failed'
    assert state['error'] == 'Failed to load face detection models. Please refresh the page.'
    assert state['upload_enabled'] is False
    assert upload(client).status_code == 503
    page = client.get('/app').text
    assert 'Please refresh the page.' in page
    assert 'type="file"' not in page


def test_page_upload_flow(face):
  with make_client(FakeProvider(faces=[face])) as client:
    page = client.get('/app').text
    assert 'accept="image/*"' in page
    r = upload(client, url='/app')
    assert r.status_code == 200
    assert f'Symmetry Score: {symmetry_score(face.landmarks)}%' in r.text
    assert '/api/overlay?g=1' in r.text


def test_image_missing_before_upload():
  with make_client(FakeProvider()) as client:
    assert client.get('/api/image').status_code == 404
    assert client.get('/api/overlay').status_code == 404


SVG = (
  b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10">'
  b'<script>alert(document.cookie)</script></svg>'
)


def test_undecodable_upload_is_never_served_back():
  with make_client(FakeProvider(faces=[])) as client:
    r = upload(client, SVG, name='x.svg', ctype='image/svg+xml')
    assert r.status_code == 500
    assert r.json()['image_url'] is None
    img = client.get('/api/image')
    assert img.status_code == 404
    assert b'<script>' not in img.content


def test_image_served_as_reencoded_png_whatever_the_declared_type(face):
  with make_client(FakeProvider(faces=[face])) as client:
    body = upload(client, png_bytes(), name='face.svg', ctype='image/svg+xml').json()
    img = client.get(body['image_url'])
    assert img.status_code == 200
    assert img.headers['content-type'] == 'image/png'
    assert img.headers['x-content-type-options'] == 'nosniff'
    assert img.content.startswith(b'\x89PNG')


def test_shutdown_waits_for_model_loading_before_close(gate):
  provider = FakeProvider(gate=gate)
  with make_client(provider, start=False) as client:
    for _ in range(100):
      if provider.init_calls:
        break
      time.sleep(0.02)
    assert client.get('/api/state').json()['phase'] == 'models_loading'
    threading.Timer(0.2, gate.set).start()
  assert provider.events == ['init', 'close']
