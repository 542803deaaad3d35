from fastapi.templating import Jinja2Templates

from .config import settings
from .database import create_backend
from .pronunciation import PronunciationChecker
from .session import SessionRegistry
from .vocabulary import VocabularyManager

templates = Jinja2Templates(directory=settings.TEMPLATES_DIR)
vocab_manager = VocabularyManager(settings.VOCAB_DIR)
registry = SessionRegistry(
    vocab_manager,
    create_backend(),
    lambda: PronunciationChecker(api_key=settings.GEMINI_API_KEY),
)
