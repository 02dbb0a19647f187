from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import HTMLResponse

from core.view import render_page, render_view
from routes.analyze import get_orchestrator, run_upload

router = APIRouter()


@router.get('/app', response_class=HTMLResponse)
def page(request: Request):
  orch = get_orchestrator(request)
  return render_page(render_view(orch.state, orch.session))


@router.post('/app', response_class=HTMLResponse)
async def page_upload(request: Request, file: Optional[UploadFile] = File(None)):
  orch = get_orchestrator(request)
  # the form is only rendered once models are ready
  if orch.ready:
    await run_upload(orch, file)
  return render_page(render_view(orch.state, orch.session))
