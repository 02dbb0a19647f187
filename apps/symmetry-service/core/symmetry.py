import math

from core.errors import InvalidInput
from core.landmarks import FaceLandmarks

# left/right landmark pairs mirrored across the face midline
SYMMETRY_PAIRS = (
  (0, 16), (1, 15), (2, 14), (3, 13),  # jawline
  (4, 12), (5, 11), (6, 10), (7, 9),
  (37, 43), (38, 42), (39, 41),        # eye corners
  (40, 40),                            # self-pair, always 0
  (31, 35),                            # nostrils
)

# fixed divisor in raw pixel units; not scaled by image or face size
MAX_DIFFERENCE = 100


def _coerce(landmarks):
  if isinstance(landmarks, FaceLandmarks):
    return landmarks
  if landmarks is None:
    raise InvalidInput('landmarks are required')
  if hasattr(landmarks, 'shape'):
    return FaceLandmarks.from_array(landmarks)
  return FaceLandmarks.from_points(landmarks)


def pair_differences(landmarks):
  """Manhattan distance between the two points of every symmetry pair."""
  lms = _coerce(landmarks)
  out = []
  for left, right in SYMMETRY_PAIRS:
    lp, rp = lms[left], lms[right]
    out.append(abs(lp.x - rp.x) + abs(lp.y - rp.y))
  return out


def total_difference(landmarks):
  return float(sum(pair_differences(landmarks)))


def _round_half_up(v):
  return int(math.floor(v + 0.5))


def score_from_difference(total):
  raw = 100 - (total / MAX_DIFFERENCE * 100)
  return _round_half_up(max(0.0, raw))


def symmetry_score(landmarks):
  """
  Bilateral symmetry score in [0, 100] for one face's 68 landmarks.
  Differences are summed in pixels, so larger faces score lower.
  """
  return score_from_difference(total_difference(landmarks))
