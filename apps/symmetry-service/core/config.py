import os
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

SERVICE_ROOT = Path(__file__).resolve().parents[1]


class ModelConfig(BaseModel):
  models_dir: str = str(SERVICE_ROOT / 'models')
  detector: str = 'haarcascade_frontalface_default.xml'
  landmarks: str = 'lbfmodel.yaml'
  recognition: str = 'nn4.small2.v1.t7'


class DetectorConfig(BaseModel):
  # fast variant: coarse pyramid, no relaxed second pass
  scale_factor: float = 1.1
  min_neighbors: int = 5
  min_face_px: int = 48
  min_face_frac: int = 12


class Settings(BaseModel):
  models: ModelConfig = Field(default_factory=ModelConfig)
  detector: DetectorConfig = Field(default_factory=DetectorConfig)
  log_level: str = 'INFO'
  cors_origins: List[str] = Field(default_factory=lambda: ['http://localhost:3000', 'http://127.0.0.1:3000'])


def load_settings() -> Settings:
  cfg = Settings()
  models_dir = os.getenv('FACESYM_MODELS_DIR')
  if models_dir:
    cfg.models.models_dir = models_dir
  level = os.getenv('FACESYM_LOG_LEVEL')
  if level:
    cfg.log_level = level.upper()
  origins = os.getenv('FACESYM_CORS_ORIGINS')
  if origins:
    cfg.cors_origins = [o.strip() for o in origins.split(',') if o.strip()]
  scale = os.getenv('FACESYM_SCALE_FACTOR')
  if scale:
    cfg.detector.scale_factor = float(scale)
  neighbors = os.getenv('FACESYM_MIN_NEIGHBORS')
  if neighbors:
    cfg.detector.min_neighbors = int(neighbors)
  return cfg
