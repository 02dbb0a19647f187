from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Tuple

from core.imaging import ImageHandle
from core.landmarks import DetectedFace

INIT_ERROR_MESSAGE = 'Failed to load face detection models. Please refresh the page.'
NO_FACE_MESSAGE = 'No face detected in the image. Please try another photo.'
PROCESSING_ERROR_MESSAGE = 'Error processing image. Please try again.'
UPLOAD_ERROR_MESSAGE = 'Error uploading image. Please try again.'


class Phase(str, Enum):
  MODELS_LOADING = 'models_loading'
  MODELS_FAILED = 'models_failed'
  IDLE = 'idle'
  DETECTING = 'detecting'
  DETECTED = 'detected'
  DETECTION_FAILED = 'detection_failed'
  UPLOAD_FAILED = 'upload_failed'


class FailureReason(str, Enum):
  NO_FACE = 'no_face'
  PROCESSING = 'processing'


@dataclass(frozen=True)
class ModelsLoading:
  phase: ClassVar[Phase] = Phase.MODELS_LOADING


@dataclass(frozen=True)
class ModelsFailed:
  message: str = INIT_ERROR_MESSAGE
  phase: ClassVar[Phase] = Phase.MODELS_FAILED


@dataclass(frozen=True)
class Idle:
  phase: ClassVar[Phase] = Phase.IDLE


@dataclass(frozen=True)
class Detecting:
  generation: int
  phase: ClassVar[Phase] = Phase.DETECTING


@dataclass(frozen=True)
class Detected:
  generation: int
  score: int
  total_difference: float
  pair_differences: Tuple[float, ...]
  faces: Tuple[DetectedFace, ...]
  phase: ClassVar[Phase] = Phase.DETECTED


@dataclass(frozen=True)
class DetectionFailed:
  generation: int
  reason: FailureReason
  message: str
  phase: ClassVar[Phase] = Phase.DETECTION_FAILED


@dataclass(frozen=True)
class UploadFailed:
  message: str = UPLOAD_ERROR_MESSAGE
  phase: ClassVar[Phase] = Phase.UPLOAD_FAILED


READY_STATES = (Idle, Detecting, Detected, DetectionFailed, UploadFailed)


def models_ready(state):
  return isinstance(state, READY_STATES)


def error_message(state) -> Optional[str]:
  return getattr(state, 'message', None)


@dataclass
class UploadSession:
  generation: int
  handle: Optional[ImageHandle] = None
  image: Any = None
  canvas: Any = None
  started: float = field(default=0.0)

  def release(self):
    if self.handle is not None:
      self.handle.release()
    self.image = None
    self.canvas = None
