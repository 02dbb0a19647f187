import asyncio, logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import load_settings
from core.detector import DetectorOptions, OpenCVLandmarkProvider
from core.logging_config import setup_logging
from core.orchestrator import UploadOrchestrator
from routes.analyze import router as analyze_router
from routes.page import router as page_router
from routes.preview import router as preview_router

logger = logging.getLogger(__name__)


def create_app(provider=None, settings=None):
  settings = settings or load_settings()
  setup_logging(settings.log_level)
  provider = provider or OpenCVLandmarkProvider(settings.models)
  orchestrator = UploadOrchestrator(provider, DetectorOptions.from_config(settings.detector))

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    # load models in the background so /api/state can report progress
    task = asyncio.create_task(orchestrator.start())
    yield
    if not task.done():
      task.cancel()
      # initialize runs in a worker thread; wait for it before closing
      with suppress(asyncio.CancelledError):
        await task
    orchestrator.close()
    logger.info('symmetry service stopped')

  app = FastAPI(title='Face Symmetry Service', lifespan=lifespan)
  app.state.orchestrator = orchestrator

  app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=['*'],
    allow_headers=['*']
  )

  @app.get('/')
  def health():
    return {'msg': 'Face symmetry service running', 'phase': orchestrator.state.phase.value}

  app.include_router(analyze_router, prefix='/api')
  app.include_router(preview_router, prefix='/api')
  app.include_router(page_router)
  return app


app = create_app()
