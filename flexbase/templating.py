from pathlib import Path

from fastapi.templating import Jinja2Templates

TEMPLATES_PATH = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_PATH))

__all__ = ["templates"]
