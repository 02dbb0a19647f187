class FaceSymmetryError(Exception):
  pass

class InitError(FaceSymmetryError):
  """Model artifacts could not be loaded."""

class InvalidInput(FaceSymmetryError):
  """Landmarks or image bytes are missing or malformed."""

class DetectionFailure(FaceSymmetryError):
  """The landmark provider failed while running on an image."""

class ModelsNotReady(FaceSymmetryError):
  """An upload arrived before the models finished loading."""

class Superseded(FaceSymmetryError):
  """A newer upload replaced this one while it was in flight."""

  def __init__(self, generation, current):
    super().__init__(f'upload {generation} superseded by {current}')
    self.generation = generation
    self.current = current
