from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.session import Detected, ModelsLoading, error_message, models_ready

IMAGE_URL = '/api/image'
OVERLAY_URL = '/api/overlay'
TEMPLATES_DIR = Path(__file__).resolve().parent / 'templates'

env = Environment(
  loader=FileSystemLoader(str(TEMPLATES_DIR)),
  autoescape=select_autoescape(['html', 'xml'])
)


def render_view(state, session=None):
  has_image = session is not None and session.handle is not None and not session.handle.released
  detected = isinstance(state, Detected)
  view = {
    'phase': state.phase.value,
    'loading': isinstance(state, ModelsLoading),
    'error': error_message(state),
    'upload_enabled': models_ready(state),
    'image_url': f'{IMAGE_URL}?g={session.generation}' if has_image else None,
    'overlay_url': f'{OVERLAY_URL}?g={session.generation}' if detected and has_image else None,
    'score': state.score if detected else None,
    'score_label': f'Symmetry Score: {state.score}%' if detected else None,
    'faces': len(state.faces) if detected else 0,
  }
  return view


def render_page(view):
  return env.get_template('page.html').render(view=view)
