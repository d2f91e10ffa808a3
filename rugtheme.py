"""Theme resolver: asks a Gemini model for a themed rug character set.

The weaver never talks to the network. A caller that wants an AI-flavoured
rug awaits resolve_theme() first and hands the character set to the engine:

    theme = await resolve_theme(theme_request_for("Sacred Geometry"))
    grid = generate_rug(config, theme.characters.to_charset())

resolve_theme() never raises. A missing API key, connection trouble, HTTP
errors, timeouts and replies that don't match the schema are all logged
and answered with DEFAULT_THEME, so the caller can always weave.

Configuration comes from the environment (the CLI loads `.env` first):

    GEMINI_API_KEY   API key (API_KEY is accepted as a fallback)
    GEMINI_MODEL     model id, default "gemini-3-flash-preview"
    GEMINI_BASE_URL  API root, default the public v1beta endpoint
"""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rugloom import DEFAULT_CHARSET, CharacterSet

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ThemeCharacters(BaseModel):
    """The five glyph roles, as the model returns them (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    # One code point per glyph: a cell is exactly one character wide.
    border: str = Field(min_length=1, max_length=1)
    inner_border: str = Field(alias="innerBorder", min_length=1, max_length=1)
    field: str = Field(min_length=1, max_length=1)
    medallion: str = Field(min_length=1, max_length=1)
    accent: str = Field(min_length=1, max_length=1)

    def to_charset(self) -> CharacterSet:
        return CharacterSet(
            border=self.border,
            inner_border=self.inner_border,
            field=self.field,
            medallion=self.medallion,
            accent=self.accent,
        )


class RugTheme(BaseModel):
    name: str
    description: str
    characters: ThemeCharacters


DEFAULT_THEME = RugTheme(
    name="The Grand Shiraz",
    description="A masterwork of nested patterns and mythic motifs, woven in code.",
    characters=ThemeCharacters(
        border=DEFAULT_CHARSET.border,
        inner_border=DEFAULT_CHARSET.inner_border,
        field=DEFAULT_CHARSET.field,
        medallion=DEFAULT_CHARSET.medallion,
        accent=DEFAULT_CHARSET.accent,
    ),
)

_GLYPH_ROLES = ("border", "innerBorder", "field", "medallion", "accent")

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "description": {"type": "STRING"},
        "characters": {
            "type": "OBJECT",
            "properties": {role: {"type": "STRING"} for role in _GLYPH_ROLES},
            "required": list(_GLYPH_ROLES),
        },
    },
    "required": ["name", "description", "characters"],
}


def theme_request_for(style_name: str) -> str:
    """The style description sent when renewing a rug's design."""
    return f"{style_name} - highly detailed and unique"


def build_prompt(style: str) -> str:
    return (
        f'Generate a highly detailed ASCII Persian Rug design specification for the style: "{style}".\n'
        "The rug should have a sophisticated multi-layered border system (at least 3 distinct "
        "borders) and a dense, symmetrical field.\n\n"
        "Provide a name, a poetic description, and a set of distinct characters for:\n"
        "1. Outer geometric border (slim)\n"
        "2. Wide secondary border (decorative)\n"
        "3. Main field pattern (complex)\n"
        "4. Central medallion or focal motif\n"
        "5. Accent details used throughout.\n\n"
        "Characters should be visually distinct (e.g., █ for solid, ╬ for ornate lines, ❀ for floral)."
    )


# ---------------------------------------------------------------------------
# Client protocol: anything that turns a prompt into JSON text
# ---------------------------------------------------------------------------

class ThemeClient(Protocol):
    async def __call__(self, prompt: str) -> str: ...


class GeminiThemeClient:
    """Async client for the Gemini generateContent endpoint.

    Asks for JSON output constrained to RESPONSE_SCHEMA and returns the
    first candidate's text.

    Args:
        api_key:  Gemini API key. Calls fail with ThemeError when empty.
        model:    Model id. Defaults to DEFAULT_MODEL.
        base_url: API root. Defaults to the public v1beta endpoint.
        timeout:  HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_env(cls) -> GeminiThemeClient:
        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
            model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
            base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL),
        )

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        url = f"{self._base_url}/models/{self._model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        return url, body

    def _parse_response(self, data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ThemeError("Unexpected response format from Gemini") from e
        if not isinstance(text, str) or not text.strip():
            raise ThemeError("Empty response from Gemini")
        return text

    async def __call__(self, prompt: str) -> str:
        if not self._api_key:
            raise ThemeError("No Gemini API key configured (set GEMINI_API_KEY)")
        url, body = self._build_request(prompt)
        logger.debug("theme request model=%s prompt_len=%d", self._model, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ThemeError(f"Cannot connect to Gemini at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise ThemeError(f"Gemini returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise ThemeError(f"Gemini timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise ThemeError(f"Gemini request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ThemeError("Gemini returned a body that is not JSON") from e
        text = self._parse_response(data)
        logger.debug("theme response len=%d", len(text))
        return text


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

async def resolve_theme(style_description: str, client: ThemeClient | None = None) -> RugTheme:
    """Ask for a themed character set; fall back to DEFAULT_THEME on any failure."""
    if client is None:
        client = GeminiThemeClient.from_env()
    try:
        text = await client(build_prompt(style_description))
        theme = RugTheme.model_validate_json(text.strip())
    except ThemeError as e:
        logger.warning("Theme request failed, using %r: %s", DEFAULT_THEME.name, e)
        return DEFAULT_THEME
    except ValidationError as e:
        logger.warning("Theme reply rejected, using %r: %s", DEFAULT_THEME.name, e)
        return DEFAULT_THEME
    except Exception as e:
        logger.warning("Theme lookup crashed, using %r: %r", DEFAULT_THEME.name, e)
        return DEFAULT_THEME
    logger.info("Theme resolved: %s", theme.name)
    return theme


# ---------------------------------------------------------------------------
# ThemeError: raised by GeminiThemeClient, absorbed by resolve_theme
# ---------------------------------------------------------------------------

class ThemeError(RuntimeError):
    """Raised when the theme service cannot be reached or replies badly."""
