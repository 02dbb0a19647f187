import logging, time

from starlette.concurrency import run_in_threadpool

from core.errors import InvalidInput, ModelsNotReady, Superseded
from core.imaging import ImageHandle, decode_image, encode_png, new_canvas
from core.session import (
  NO_FACE_MESSAGE, PROCESSING_ERROR_MESSAGE, Detected, DetectionFailed, Detecting,
  FailureReason, Idle, ModelsFailed, ModelsLoading, UploadFailed, UploadSession, models_ready,
)
from core.symmetry import pair_differences, score_from_difference
from core.utils import proc_time_ms

logger = logging.getLogger(__name__)


def _decode_for_display(data):
  image = decode_image(data)
  return image, encode_png(image)


class UploadOrchestrator:
  """
  Drives one upload at a time: decode -> detect -> score -> draw.

  Each file selection takes a fresh generation number. A step that resumes
  after a newer selection has started raises Superseded and leaves the
  state alone, so the latest upload always wins.
  """

  def __init__(self, provider, options):
    self.provider = provider
    self.options = options
    self.state = ModelsLoading()
    self.session = None
    self._generation = 0
    self._started = False

  @property
  def ready(self):
    return models_ready(self.state)

  async def start(self):
    if self._started:
      return self.state
    self._started = True
    t0 = time.time()
    try:
      await run_in_threadpool(self.provider.initialize)
    except Exception:
      logger.exception('failed to load face detection models')
      self.state = ModelsFailed()
      return self.state
    logger.info('models ready in %sms', proc_time_ms(t0))
    self.state = Idle()
    return self.state

  def _check(self, generation):
    if generation != self._generation:
      raise Superseded(generation, self._generation)

  def _begin(self, handle):
    self._generation += 1
    if self.session is not None:
      self.session.release()
    self.session = UploadSession(generation=self._generation, handle=handle, started=time.time())
    self.state = Idle()
    return self._generation

  async def select_file(self, data, filename=None, content_type=None):
    if not self.ready:
      raise ModelsNotReady('models are not loaded')

    if not data or (content_type and not content_type.startswith('image/')):
      self._begin(None)
      logger.warning('upload rejected: filename=%s type=%s bytes=%s', filename, content_type, len(data or b''))
      self.state = UploadFailed()
      return self.state

    gen = self._begin(None)
    session = self.session

    try:
      image, png = await run_in_threadpool(_decode_for_display, data)
    except InvalidInput as exc:
      self._check(gen)
      logger.warning('upload %s could not be decoded: %s', gen, exc)
      return self._fail(gen, FailureReason.PROCESSING, PROCESSING_ERROR_MESSAGE)
    self._check(gen)
    # only decoded pixels are ever served back, never the raw upload
    session.handle = ImageHandle(png, filename, 'image/png')
    session.image = image
    self.state = Detecting(generation=gen)

    try:
      faces = await run_in_threadpool(self.provider.detect_faces, image, self.options)
    except Exception:
      self._check(gen)
      logger.exception('detection failed for upload %s', gen)
      return self._fail(gen, FailureReason.PROCESSING, PROCESSING_ERROR_MESSAGE)
    self._check(gen)

    if not faces:
      logger.info('upload %s: no face detected', gen)
      return self._fail(gen, FailureReason.NO_FACE, NO_FACE_MESSAGE)

    try:
      diffs = pair_differences(faces[0].landmarks)
      canvas = new_canvas(image.shape)
      self.provider.draw_landmarks(canvas, faces)
    except Exception:
      logger.exception('scoring failed for upload %s', gen)
      return self._fail(gen, FailureReason.PROCESSING, PROCESSING_ERROR_MESSAGE)

    total = float(sum(diffs))
    session.canvas = canvas
    self.state = Detected(
      generation=gen, score=score_from_difference(total), total_difference=total,
      pair_differences=tuple(diffs), faces=tuple(faces)
    )
    logger.info('upload %s: %d face(s), score=%d, %sms', gen, len(faces), self.state.score, proc_time_ms(session.started))
    return self.state

  def _fail(self, gen, reason, message):
    self.state = DetectionFailed(generation=gen, reason=reason, message=message)
    return self.state

  def close(self):
    if self.session is not None:
      self.session.release()
      self.session = None
    self.provider.close()
