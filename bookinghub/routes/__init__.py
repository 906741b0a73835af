# Routes package

from bookinghub.routes.main import main_bp
from bookinghub.routes.api import api_bp

__all__ = ['main_bp', 'api_bp']
