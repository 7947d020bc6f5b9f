import asyncio
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import requests
from google import genai
from google.genai import types

from src.utils.errors import TimelineGenerationError, TimelineParseError
from .response_parser import parse_timeline
from .schema import GEMINI_TIMELINE_RESPONSE_SCHEMA, TIMELINE_FORMAT_INSTRUCTIONS
from .timeline import Timeline


SYSTEM_PROMPT = """You are the writer of NOWHERE, an AI radio station (FM 404.2).
You plan one episode at a time as a timeline of blocks: hosts talking,
songs to search for and play, music fades and short silences.
Keep lines conversational and suited to being read aloud."""


def build_user_prompt(
    duration_sec: int,
    theme: Optional[str] = None,
    user_request: Optional[str] = None,
    recent_songs: Optional[List[str]] = None
) -> str:
    parts = [f"Plan the next episode, about {duration_sec} seconds long."]
    if theme:
        parts.append(f"Theme: {theme}.")
    if user_request:
        parts.append(f"A listener wrote in: \"{user_request}\". Respond to it on air.")
    if recent_songs:
        played = "\n".join(f"- {song}" for song in recent_songs)
        parts.append(f"Recently played. Do not repeat these songs, and pick other artists:\n{played}")
    parts.append(TIMELINE_FORMAT_INSTRUCTIONS)
    return "\n".join(parts)


class BaseContentGenerator(ABC):
    """
    Abstract base class for timeline generators.
    Subclasses implement one blocking request; parsing and retries are shared.
    """

    def __init__(self, max_parse_retries: int = 3):
        self.max_parse_retries = max_parse_retries

    @abstractmethod
    def _request_completion(self, system_prompt: str, user_prompt: str) -> str:
        """Send one request to the model and return its raw text"""
        pass

    async def generate(
        self,
        duration_sec: int,
        theme: Optional[str] = None,
        user_request: Optional[str] = None,
        recent_songs: Optional[List[str]] = None
    ) -> Timeline:
        """Generate a timeline. Raises instead of returning an empty one."""
        user_prompt = build_user_prompt(duration_sec, theme, user_request, recent_songs)
        loop = asyncio.get_running_loop()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_parse_retries + 1):
            print(f"✍️ [Writer] Generating timeline ({duration_sec}s), attempt {attempt}/{self.max_parse_retries}")
            text = await loop.run_in_executor(None, self._request_completion, SYSTEM_PROMPT, user_prompt)
            try:
                return parse_timeline(text or "")
            except TimelineParseError as e:
                print(f"⚠️ [Writer] Could not parse timeline: {e}")
                last_error = e

        raise TimelineGenerationError(f"No valid timeline after {self.max_parse_retries} attempts: {last_error}")


class GeminiContentGenerator(BaseContentGenerator):
    """Timeline generator backed by the google-genai client with a JSON response schema"""

    def __init__(self, model: str = "gemini-2.0-flash", api_key: Optional[str] = None, max_parse_retries: int = 3):
        super().__init__(max_parse_retries)
        self.model = model
        self.client = genai.Client(api_key=api_key or os.getenv("GOOGLE_API_KEY"))

    def _request_completion(self, system_prompt: str, user_prompt: str) -> str:
        google_config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_schema=GEMINI_TIMELINE_RESPONSE_SCHEMA,
            response_mime_type="application/json",
        )
        response = self.client.models.generate_content(
            model=self.model,
            contents=[types.Content(role="user", parts=[types.Part(text=user_prompt)])],
            config=google_config
        )
        return response.text


class OpenAIContentGenerator(BaseContentGenerator):
    """Timeline generator for OpenAI-compatible /chat/completions endpoints"""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        api_key: Optional[str] = None,
        max_parse_retries: int = 3,
        timeout: float = 120.0
    ):
        super().__init__(max_parse_retries)
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self.timeout = timeout

    def _request_completion(self, system_prompt: str, user_prompt: str) -> str:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        r = requests.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": messages,
                "response_format": {"type": "json_object"},
            },
            timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["choices"][0]["message"]["content"]


def create_content_generator(engine: str = "gemini", **kwargs) -> BaseContentGenerator:
    """
    Create a content generator for the configured dialect.

    Raises:
        ValueError: If engine type is not supported
    """
    engine = engine.lower()
    if engine == "gemini":
        return GeminiContentGenerator(**kwargs)
    elif engine == "openai":
        return OpenAIContentGenerator(**kwargs)
    raise ValueError(f"Unsupported content engine: {engine}. Available: gemini, openai")
