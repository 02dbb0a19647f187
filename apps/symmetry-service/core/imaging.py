import cv2, numpy as np

from core.errors import InvalidInput


class ImageHandle:
  """Holds the uploaded bytes for display until released."""

  def __init__(self, data, filename=None, content_type=None):
    self._data = data
    self.filename = filename
    self.content_type = content_type or 'application/octet-stream'

  @property
  def released(self):
    return self._data is None

  @property
  def data(self):
    return self._data

  def release(self):
    self._data = None


def decode_image(data):
  if not data:
    raise InvalidInput('empty image data')
  arr = np.frombuffer(data, np.uint8)
  img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
  if img is None or img.size == 0:
    raise InvalidInput('could not decode image')
  return img


def new_canvas(shape):
  # transparent RGBA surface matching the displayed image
  h, w = shape[:2]
  return np.zeros((h, w, 4), np.uint8)


def encode_png(img):
  ok, buf = cv2.imencode('.png', img)
  if not ok:
    raise InvalidInput('could not encode png')
  return buf.tobytes()
