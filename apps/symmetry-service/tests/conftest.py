import threading

import cv2, numpy as np
import pytest

from core.detector import LandmarkProvider
from core.landmarks import BoundingBox, DetectedFace, FaceLandmarks
from core.symmetry import SYMMETRY_PAIRS


def symmetric_points():
  """68 points where every symmetry pair coincides, so the score is 100."""
  pts = [[50.0 + i * 3.0, 80.0 + (i % 7) * 4.0] for i in range(68)]
  for left, right in SYMMETRY_PAIRS:
    pts[left] = list(pts[right])
  return pts


def shifted_points(dx=0.0, dy=0.0):
  pts = symmetric_points()
  for left, right in SYMMETRY_PAIRS:
    if left != right:
      pts[left] = [pts[right][0] + dx, pts[right][1] + dy]
  return pts


def make_face(points, conf=1.0):
  return DetectedFace(FaceLandmarks.from_points(points), BoundingBox(10, 10, 100, 100), conf)


def png_bytes(w=120, h=90, value=128):
  ok, buf = cv2.imencode('.png', np.full((h, w, 3), value, np.uint8))
  assert ok
  return buf.tobytes()


class FakeProvider(LandmarkProvider):
  def __init__(self, faces=(), error=None, init_error=None, gate=None):
    self.faces = faces
    self.error = error
    self.init_error = init_error
    self.gate = gate
    self.ready = False
    self.closed = False
    self.init_calls = 0
    self.detect_calls = 0
    self.draw_calls = []
    self.events = []

  def initialize(self):
    self.init_calls += 1
    if self.gate is not None:
      self.gate.wait(5)
    self.events.append('init')
    if self.init_error is not None:
      raise self.init_error
    self.ready = True

  def detect_faces(self, image, options):
    self.detect_calls += 1
    if self.error is not None:
      raise self.error
    if callable(self.faces):
      return self.faces(image)
    return list(self.faces)

  def draw_landmarks(self, canvas, detections):
    self.draw_calls.append(list(detections))
    return super().draw_landmarks(canvas, detections)

  def close(self):
    self.events.append('close')
    self.closed = True


@pytest.fixture
def face():
  return make_face(shifted_points(dx=2.0, dy=1.0))


@pytest.fixture
def gate():
  ev = threading.Event()
  yield ev
  ev.set()
