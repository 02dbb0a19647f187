import logging
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse

from core.errors import ModelsNotReady, Superseded
from core.session import Detected, FailureReason, Phase
from core.symmetry import SYMMETRY_PAIRS
from core.view import render_view

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS = {
  Phase.MODELS_LOADING: 503,
  Phase.MODELS_FAILED: 503,
  Phase.IDLE: 200,
  Phase.DETECTING: 202,
  Phase.DETECTED: 200,
  Phase.UPLOAD_FAILED: 400,
}


def get_orchestrator(request: Request):
  return request.app.state.orchestrator


def status_for(state):
  if state.phase == Phase.DETECTION_FAILED:
    return 422 if state.reason == FailureReason.NO_FACE else 500
  return STATUS[state.phase]


async def read_upload(file: Optional[UploadFile]):
  if file is None:
    return None, None, None
  try:
    contents = await file.read()
  except Exception:
    logger.exception('reading upload %s failed', file.filename)
    contents = None
  return contents, file.filename, file.content_type


async def run_upload(orch, file):
  """Feed one upload through the orchestrator; returns (state, superseded)."""
  data, filename, content_type = await read_upload(file)
  try:
    return await orch.select_file(data, filename, content_type), False
  except Superseded as exc:
    logger.info('%s', exc)
    return orch.state, True


def details(state):
  face = state.faces[0]
  return {
    'total_difference': round(state.total_difference, 2),
    'pairs': [
      {'left': l, 'right': r, 'difference': round(d, 2)}
      for (l, r), d in zip(SYMMETRY_PAIRS, state.pair_differences)
    ],
    'landmarks': face.landmarks.as_list(),
    'box': face.box.as_dict() if face.box else None,
    'confidence': face.confidence,
  }


@router.get('/state')
def get_state(request: Request):
  orch = get_orchestrator(request)
  return JSONResponse(render_view(orch.state, orch.session))


@router.post('/analyze')
async def analyze(request: Request, file: Optional[UploadFile] = File(None)):
  orch = get_orchestrator(request)
  try:
    if not orch.ready:
      raise ModelsNotReady('models are not loaded')
    state, superseded = await run_upload(orch, file)
  except ModelsNotReady:
    return JSONResponse(render_view(orch.state, orch.session), status_code=503)

  payload = render_view(state, orch.session)
  if superseded:
    payload['superseded'] = True
    return JSONResponse(payload, status_code=409)
  if isinstance(state, Detected):
    payload['details'] = details(state)
  return JSONResponse(payload, status_code=status_for(state))
