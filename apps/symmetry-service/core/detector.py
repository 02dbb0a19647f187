import logging
from dataclasses import dataclass
from pathlib import Path

import cv2, numpy as np

from core.errors import DetectionFailure, InitError, InvalidInput
from core.landmarks import CONTOURS, BoundingBox, DetectedFace, FaceLandmarks

logger = logging.getLogger(__name__)

LINE_COLOR = (255, 160, 0, 255)  # BGRA
POINT_COLOR = (0, 255, 0, 255)


@dataclass(frozen=True)
class DetectorOptions:
  scale_factor: float = 1.1
  min_neighbors: int = 5
  min_face_px: int = 48
  min_face_frac: int = 12

  @classmethod
  def from_config(cls, cfg):
    return cls(
      scale_factor=cfg.scale_factor, min_neighbors=cfg.min_neighbors,
      min_face_px=cfg.min_face_px, min_face_frac=cfg.min_face_frac
    )

  def min_size(self, w, h):
    return (max(self.min_face_px, w // self.min_face_frac), max(self.min_face_px, h // self.min_face_frac))


class LandmarkProvider:
  """Detects faces and their 68 landmarks; must be initialized before use."""

  ready = False

  def initialize(self):
    raise NotImplementedError

  def detect_faces(self, image, options):
    raise NotImplementedError

  def close(self):
    pass

  def draw_landmarks(self, canvas, detections):
    for face in detections:
      pts = face.landmarks.as_array()
      for idx, closed in CONTOURS:
        poly = np.round(pts[list(idx)]).astype(np.int32)
        cv2.polylines(canvas, [poly], closed, LINE_COLOR, 1, cv2.LINE_AA)
      for x, y in np.round(pts).astype(np.int32):
        cv2.circle(canvas, (int(x), int(y)), 2, POINT_COLOR, -1, cv2.LINE_AA)
    return canvas


class OpenCVLandmarkProvider(LandmarkProvider):
  """Haar cascade detector + LBF facemark, with the recognition net loaded alongside."""

  def __init__(self, models):
    self.models = models
    self.cascade = None
    self.facemark = None
    self.recognizer = None

  @property
  def ready(self):
    return self.facemark is not None

  def _path(self, name):
    return Path(self.models.models_dir) / name

  def detector_path(self):
    path = self._path(self.models.detector)
    if path.is_file():
      return path
    # opencv 4.x wheels ship the cascade under cv2.data
    return Path(cv2.data.haarcascades) / self.models.detector

  def _load_detector(self):
    path = self.detector_path()
    cascade = cv2.CascadeClassifier(str(path))
    if cascade.empty():
      raise InitError(f'detector model not loaded: {path}')
    return cascade

  def _load_landmarks(self):
    path = self._path(self.models.landmarks)
    if not path.is_file():
      raise InitError(f'landmark model missing: {path}')
    try:
      facemark = cv2.face.createFacemarkLBF()
      facemark.loadModel(str(path))
    except AttributeError as exc:
      raise InitError('cv2.face unavailable, install opencv-contrib-python') from exc
    except cv2.error as exc:
      raise InitError(f'landmark model not loaded: {path}') from exc
    return facemark

  def _load_recognizer(self):
    path = self._path(self.models.recognition)
    if not path.is_file():
      raise InitError(f'recognition model missing: {path}')
    try:
      return cv2.dnn.readNetFromTorch(str(path))
    except cv2.error as exc:
      raise InitError(f'recognition model not loaded: {path}') from exc

  def initialize(self):
    if self.ready:
      return
    cascade = self._load_detector()
    facemark = self._load_landmarks()
    recognizer = self._load_recognizer()
    self.cascade, self.recognizer = cascade, recognizer
    self.facemark = facemark
    logger.info('models loaded from %s', self.models.models_dir)

  def close(self):
    self.cascade = self.facemark = self.recognizer = None

  def preprocess(self, img):
    ycrcb = cv2.cvtColor(img, cv2.COLOR_BGR2YCrCb)
    Y, Cr, Cb = cv2.split(ycrcb)
    meanY = float(np.mean(Y))
    target = 140.0
    num = np.log(max(1e-6, target / 255.0))
    den = np.log(max(1e-6, meanY / 255.0))
    gamma = float(np.clip(num / den if den != 0 else 1.0, 0.6, 1.6))
    img_gamma = np.clip((img.astype(np.float32) / 255.0) ** gamma * 255.0, 0, 255).astype(np.uint8)

    # CLAHE on luma only
    ycrcb2 = cv2.cvtColor(img_gamma, cv2.COLOR_BGR2YCrCb)
    Y2, Cr2, Cb2 = cv2.split(ycrcb2)
    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    Y2c = clahe.apply(Y2)
    det_img = cv2.cvtColor(cv2.merge([Y2c, Cr2, Cb2]), cv2.COLOR_YCrCb2BGR)
    return cv2.cvtColor(det_img, cv2.COLOR_BGR2GRAY)

  def detect_faces(self, image, options):
    if not self.ready:
      raise DetectionFailure('models not loaded')
    try:
      gray = self.preprocess(image)
      h, w = gray.shape[:2]
      rects, _, weights = self.cascade.detectMultiScale3(
        gray, scaleFactor=options.scale_factor, minNeighbors=options.min_neighbors,
        flags=cv2.CASCADE_SCALE_IMAGE, minSize=options.min_size(w, h), outputRejectLevels=True
      )
      if len(rects) == 0:
        return []
      rects = np.asarray(rects, dtype=np.int32).reshape(-1, 4)
      weights = np.ravel(np.asarray(weights, dtype=np.float64))
      ok, shapes = self.facemark.fit(gray, rects)
    except cv2.error as exc:
      raise DetectionFailure(f'opencv: {exc}') from exc
    if not ok:
      return []

    faces = []
    for (x, y, bw, bh), conf, shape in zip(rects, weights, shapes):
      try:
        lms = FaceLandmarks.from_array(shape)
      except InvalidInput as exc:
        raise DetectionFailure(f'bad landmark fit: {exc}') from exc
      box = BoundingBox(int(x), int(y), int(bw), int(bh))
      faces.append(DetectedFace(landmarks=lms, box=box, confidence=round(float(conf), 3)))
    faces.sort(key=lambda f: f.confidence, reverse=True)
    return faces
