import base64
import logging
from typing import Any, Callable, Dict, List, Optional

import google.generativeai as genai
from pydantic import ValidationError

from .config import settings
from .errors import CredentialMissingError, RemoteCallError
from .models import PronunciationResult

logger = logging.getLogger(__name__)

CREDENTIAL_MISSING_FEEDBACK = "API key missing"
CONNECTION_ERROR_FEEDBACK = "Connection error, please retry."

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "INTEGER"},
        "feedback": {"type": "STRING"},
    },
    "required": ["score", "feedback"],
}


def default_model_factory(api_key: str, model_name: str):
    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model_name)


class PronunciationChecker:
    """
    Scores a recorded attempt at a word with a hosted Gemini model.

    ``check`` never raises: a missing API key or any failure of the remote
    call is logged and turned into a zero-score result carrying a fixed
    feedback message. Each call is a fresh request with no retry.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = settings.GEMINI_MODEL,
        mime_type: str = settings.AUDIO_MIME_TYPE,
        native_language: str = settings.NATIVE_LANGUAGE,
        learner_level: str = settings.LEARNER_LEVEL,
        model_factory: Callable[[str, str], Any] = default_model_factory,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.mime_type = mime_type
        self.native_language = native_language
        self.learner_level = learner_level
        self.model_factory = model_factory

    @staticmethod
    def encode_audio(audio: bytes) -> str:
        return base64.b64encode(audio).decode("ascii")

    def build_prompt(self, target_word: str) -> str:
        return f"""
You are an encouraging English teacher for {self.native_language} students ({self.learner_level} level).
The student is trying to pronounce the word: "{target_word}".
Listen to the audio.
1. Rate the pronunciation on a scale of 0 to 100.
2. Provide specific, helpful feedback in {self.native_language} on how to improve. Keep it short (under 20 words).

Return JSON format: {{ "score": number, "feedback": "string" }}
""".strip()

    def build_request(self, audio: bytes, target_word: str) -> List[Any]:
        return [
            {
                "inline_data": {
                    "mime_type": self.mime_type,
                    "data": self.encode_audio(audio),
                }
            },
            self.build_prompt(target_word),
        ]

    @staticmethod
    def parse_reply(text: Optional[str]) -> PronunciationResult:
        if not text or not text.strip():
            raise RemoteCallError("Empty reply from scoring model")
        try:
            return PronunciationResult.model_validate_json(text)
        except ValidationError as e:
            raise RemoteCallError(f"Malformed reply from scoring model: {e}") from e

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise CredentialMissingError("No API key configured")
        return self.api_key

    async def check(self, audio: bytes, target_word: str) -> PronunciationResult:
        try:
            api_key = self._require_api_key()
        except CredentialMissingError as e:
            logger.error(f"Pronunciation check skipped: {e}")
            return PronunciationResult(score=0, feedback=CREDENTIAL_MISSING_FEEDBACK)

        logger.info(
            f"Checking pronunciation of '{target_word}' "
            f"({len(audio)} bytes, model {self.model_name})"
        )
        try:
            model = self.model_factory(api_key, self.model_name)
            response = await model.generate_content_async(
                self.build_request(audio, target_word),
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=RESPONSE_SCHEMA,
                ),
            )
            result = self.parse_reply(response.text)
        except Exception as e:
            logger.error(f"Gemini error while checking '{target_word}': {e}")
            return PronunciationResult(score=0, feedback=CONNECTION_ERROR_FEEDBACK)

        logger.info(f"Pronunciation score for '{target_word}': {result.score}")
        return result
