import json
import logging
import os
from typing import Any, Dict, Optional

import litellm

from clearledger.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

litellm.drop_params = True

# provider -> (settings attribute, environment variable litellm reads)
_PROVIDER_KEYS = {
    "openrouter": ("openrouter_api_key", "OPENROUTER_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
}


class AIClient:

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.provider = self.settings.ai_provider
        self.model = self._get_model_string()
        self._configure_provider()

    @property
    def api_key(self) -> Optional[str]:
        key_attr = _PROVIDER_KEYS.get(self.provider)
        if key_attr is None:
            return None
        return getattr(self.settings, key_attr[0])

    @property
    def has_credentials(self) -> bool:
        """Ollama runs locally; every hosted provider needs its key."""
        if self.provider == "ollama":
            return True
        return bool(self.api_key)

    def _get_model_string(self) -> str:
        model = self.settings.ai_model

        if self.provider in ("openrouter", "ollama"):
            prefix = f"{self.provider}/"
            if not model.startswith(prefix):
                return f"{prefix}{model}"
        return model

    def _configure_provider(self):
        if self.provider == "openrouter":
            litellm.api_key = self.settings.openrouter_api_key
            litellm.api_base = "https://openrouter.ai/api/v1"
        elif self.provider == "ollama":
            litellm.api_base = self.settings.ai_base_url or "http://localhost:11434"
        elif self.provider in _PROVIDER_KEYS:
            litellm.api_key = self.api_key

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        json_mode: bool = False
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        env_var = None
        key_attr = _PROVIDER_KEYS.get(self.provider)
        if key_attr and self.api_key:
            env_var = key_attr[1]
            os.environ[env_var] = self.api_key

        try:
            response = await litellm.acompletion(**kwargs)
            return response.choices[0].message.content
        except Exception as e:
            logger.error(f"AI completion error: {e}")
            raise
        finally:
            if env_var:
                os.environ.pop(env_var, None)

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000
    ) -> Dict[str, Any]:
        response = await self.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True
        )

        cleaned = response.strip()
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:]
        if cleaned.startswith("```"):
            cleaned = cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]

        return json.loads(cleaned.strip())
