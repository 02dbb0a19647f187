import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from core.errors import InvalidInput

# 68-point facial landmark convention
NUM_LANDMARKS = 68

JAW = tuple(range(0, 17))
RIGHT_BROW = tuple(range(17, 22))
LEFT_BROW = tuple(range(22, 27))
NOSE_BRIDGE = tuple(range(27, 31))
NOSE_BASE = tuple(range(30, 36))
RIGHT_EYE = tuple(range(36, 42))
LEFT_EYE = tuple(range(42, 48))
OUTER_LIP = tuple(range(48, 60))
INNER_LIP = tuple(range(60, 68))

# (indices, closed) pairs in drawing order
CONTOURS = (
  (JAW, False),
  (RIGHT_BROW, False),
  (LEFT_BROW, False),
  (NOSE_BRIDGE, False),
  (NOSE_BASE, False),
  (RIGHT_EYE, True),
  (LEFT_EYE, True),
  (OUTER_LIP, True),
  (INNER_LIP, True),
)


@dataclass(frozen=True)
class LandmarkPoint:
  x: float
  y: float


@dataclass(frozen=True)
class FaceLandmarks:
  points: Tuple[LandmarkPoint, ...]

  def __post_init__(self):
    if len(self.points) != NUM_LANDMARKS:
      raise InvalidInput(f'expected {NUM_LANDMARKS} landmarks, got {len(self.points)}')
    for p in self.points:
      if not (math.isfinite(p.x) and math.isfinite(p.y)):
        raise InvalidInput('landmark coordinates must be finite')

  @classmethod
  def from_points(cls, pts: Sequence) -> 'FaceLandmarks':
    try:
      out = tuple(p if isinstance(p, LandmarkPoint) else LandmarkPoint(float(p[0]), float(p[1])) for p in pts)
    except (TypeError, ValueError, IndexError) as exc:
      raise InvalidInput(f'malformed landmark points: {exc}') from exc
    return cls(out)

  @classmethod
  def from_array(cls, arr) -> 'FaceLandmarks':
    try:
      a = np.asarray(arr, dtype=np.float64)
    except (TypeError, ValueError) as exc:
      raise InvalidInput(f'malformed landmark array: {exc}') from exc
    if a.ndim == 0 or a.size % 2:
      raise InvalidInput('landmark array must hold (x, y) pairs')
    # LBF facemark returns (1, 68, 2)
    a = a.reshape(-1, 2)
    return cls(tuple(LandmarkPoint(float(x), float(y)) for x, y in a))

  def __len__(self):
    return len(self.points)

  def __getitem__(self, i) -> LandmarkPoint:
    return self.points[i]

  def __iter__(self) -> Iterator[LandmarkPoint]:
    return iter(self.points)

  def as_array(self):
    return np.array([[p.x, p.y] for p in self.points], dtype=np.float64)

  def as_list(self):
    return [[round(p.x, 2), round(p.y, 2)] for p in self.points]


@dataclass(frozen=True)
class BoundingBox:
  x: int
  y: int
  w: int
  h: int

  def as_dict(self):
    return {'x': self.x, 'y': self.y, 'w': self.w, 'h': self.h}


@dataclass(frozen=True)
class DetectedFace:
  landmarks: FaceLandmarks
  box: Optional[BoundingBox] = None
  confidence: Optional[float] = None
