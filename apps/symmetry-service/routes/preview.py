from fastapi import APIRouter, HTTPException, Request, Response

from core.imaging import encode_png
from core.session import Detected
from routes.analyze import get_orchestrator

router = APIRouter()

NO_STORE = {'Cache-Control': 'no-store', 'X-Content-Type-Options': 'nosniff'}


@router.get('/image')
def image(request: Request):
  session = get_orchestrator(request).session
  if session is None or session.handle is None or session.handle.released:
    raise HTTPException(status_code=404, detail='no image uploaded')
  return Response(session.handle.data, media_type=session.handle.content_type, headers=NO_STORE)


@router.get('/overlay')
def overlay(request: Request):
  orch = get_orchestrator(request)
  session = orch.session
  if not isinstance(orch.state, Detected) or session is None or session.canvas is None:
    raise HTTPException(status_code=404, detail='no landmarks drawn')
  return Response(encode_png(session.canvas), media_type='image/png', headers=NO_STORE)
