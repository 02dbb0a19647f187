import logging, sys

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logging(level='INFO'):
  """Configure root logging once; later calls only adjust the level."""
  root = logging.getLogger()
  if isinstance(level, str):
    level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
      level = logging.INFO
  if not any(getattr(h, '_facesym', False) for h in root.handlers):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(FORMAT, datefmt='%H:%M:%S'))
    handler._facesym = True
    root.addHandler(handler)
  root.setLevel(level)
