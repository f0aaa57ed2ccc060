# agents/llm_client.py
import logging

import google.generativeai as genai

logger = logging.getLogger(__name__)

MODEL_NAME = "gemini-2.0-flash"   # or another model


class GeminiClient:
    """
    Async Gemini wrapper. One instance is created at startup and handed to
    the review agent.
    """

    def __init__(self, api_key: str, model: str = MODEL_NAME, max_tokens: int = 8192):
        if not api_key:
            raise ValueError("GEMINI_API_KEY is missing")
        genai.configure(api_key=api_key)
        self.model_name = model
        self.max_tokens = max_tokens
        self._model = genai.GenerativeModel(model)

    async def generate(self, prompt: str) -> str:
        response = await self._model.generate_content_async(
            prompt,
            generation_config=genai.types.GenerationConfig(
                max_output_tokens=self.max_tokens,
                temperature=0.0,
            )
        )
        return response.text.strip()
