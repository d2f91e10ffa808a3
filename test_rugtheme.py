"""Tests for rugtheme: GeminiThemeClient and resolve_theme."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

from rugloom import DEFAULT_CHARSET, CharacterSet, generate_rug, preset_config
from rugtheme import (
    DEFAULT_THEME,
    GeminiThemeClient,
    RugTheme,
    ThemeCharacters,
    ThemeError,
    build_prompt,
    resolve_theme,
    theme_request_for,
)

THEME_JSON = {
    "name": "Midnight Lattice",
    "description": "Indigo knots under a sleeping moon.",
    "characters": {
        "border": "▓",
        "innerBorder": "╫",
        "field": "∙",
        "medallion": "✺",
        "accent": "✦",
    },
}


def _mock_response(body, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class StubThemeClient:
    """Returns canned text, or raises, and records prompts."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestModels:
    def test_wire_alias(self) -> None:
        theme = RugTheme.model_validate(THEME_JSON)
        assert theme.characters.inner_border == "╫"

    def test_to_charset(self) -> None:
        charset = RugTheme.model_validate(THEME_JSON).characters.to_charset()
        assert charset == CharacterSet(border="▓", inner_border="╫", field="∙", medallion="✺", accent="✦")

    def test_blank_glyph_rejected(self) -> None:
        chars = dict(THEME_JSON["characters"], field="  ")
        with pytest.raises(ValidationError):
            ThemeCharacters.model_validate(chars)

    def test_multi_character_glyph_rejected(self) -> None:
        chars = dict(THEME_JSON["characters"], border="██")
        with pytest.raises(ValidationError):
            ThemeCharacters.model_validate(chars)

    def test_missing_role_rejected(self) -> None:
        chars = {k: v for k, v in THEME_JSON["characters"].items() if k != "medallion"}
        with pytest.raises(ValidationError):
            ThemeCharacters.model_validate(chars)

    def test_default_theme_matches_default_charset(self) -> None:
        assert DEFAULT_THEME.name == "The Grand Shiraz"
        assert DEFAULT_THEME.characters.to_charset() == DEFAULT_CHARSET


class TestPrompt:
    def test_style_in_prompt(self) -> None:
        assert '"Bird & Bloom - highly detailed and unique"' in build_prompt(theme_request_for("Bird & Bloom"))

    def test_request_for(self) -> None:
        assert theme_request_for("Sacred Geometry") == "Sacred Geometry - highly detailed and unique"


# ---------------------------------------------------------------------------
# GeminiThemeClient
# ---------------------------------------------------------------------------

class TestGeminiThemeClient:
    @pytest.fixture
    def client(self) -> GeminiThemeClient:
        return GeminiThemeClient(api_key="secret", model="test-model", base_url="http://gemini.test/v1beta/")

    async def test_happy_path(self, client: GeminiThemeClient) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("{}")))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await client("prompt") == "{}"

    async def test_request_shape(self, client: GeminiThemeClient) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("{}")))
        with patch("httpx.AsyncClient.post", mock_post):
            await client("weave me a rug")
        assert mock_post.call_args[0][0] == "http://gemini.test/v1beta/models/test-model:generateContent"
        body = mock_post.call_args.kwargs["json"]
        assert body["contents"][0]["parts"][0]["text"] == "weave me a rug"
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        schema = body["generationConfig"]["responseSchema"]
        assert schema["properties"]["characters"]["required"] == [
            "border", "innerBorder", "field", "medallion", "accent"
        ]
        assert mock_post.call_args.kwargs["headers"]["x-goog-api-key"] == "secret"

    async def test_missing_key(self) -> None:
        mock_post = AsyncMock()
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ThemeError):
                await GeminiThemeClient(api_key="")("prompt")
        mock_post.assert_not_called()

    async def test_http_error(self, client: GeminiThemeClient) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ThemeError, match="503"):
                await client("prompt")

    async def test_connect_error(self, client: GeminiThemeClient) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ThemeError, match="Cannot connect"):
                await client("prompt")

    async def test_timeout(self, client: GeminiThemeClient) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ThemeError, match="timed out"):
                await client("prompt")

    @pytest.mark.parametrize("body", [{}, {"candidates": []}, _gemini_body("   ")])
    async def test_bad_body(self, client: GeminiThemeClient, body) -> None:
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ThemeError):
                await client("prompt")

    def test_from_env(self, monkeypatch) -> None:
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "fallback-key")
        monkeypatch.setenv("GEMINI_MODEL", "gemini-test")
        client = GeminiThemeClient.from_env()
        assert client._api_key == "fallback-key"
        assert client._model == "gemini-test"


# ---------------------------------------------------------------------------
# resolve_theme
# ---------------------------------------------------------------------------

class TestResolveTheme:
    async def test_success(self) -> None:
        stub = StubThemeClient(reply=json.dumps(THEME_JSON))
        theme = await resolve_theme("Floral Garden", client=stub)
        assert theme.name == "Midnight Lattice"
        assert theme.characters.medallion == "✺"
        assert '"Floral Garden"' in stub.prompts[0]

    async def test_client_error_falls_back(self) -> None:
        stub = StubThemeClient(error=ThemeError("down"))
        assert await resolve_theme("x", client=stub) == DEFAULT_THEME

    async def test_invalid_json_falls_back(self) -> None:
        stub = StubThemeClient(reply="the loom is resting")
        assert await resolve_theme("x", client=stub) == DEFAULT_THEME

    async def test_schema_mismatch_falls_back(self) -> None:
        stub = StubThemeClient(reply=json.dumps({"name": "Half a rug"}))
        assert await resolve_theme("x", client=stub) == DEFAULT_THEME

    async def test_end_to_end_through_http(self) -> None:
        client = GeminiThemeClient(api_key="k")
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body(json.dumps(THEME_JSON))))
        with patch("httpx.AsyncClient.post", mock_post):
            theme = await resolve_theme("Persian Masterpiece", client=client)
        grid = generate_rug(preset_config("Persian Masterpiece"), theme.characters.to_charset())
        assert grid[0][0].char == "▓"
        assert grid[30][40].char == "✺"

    async def test_network_failure_still_weaves(self) -> None:
        client = GeminiThemeClient(api_key="k")
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            theme = await resolve_theme("Persian Masterpiece", client=client)
        grid = generate_rug(preset_config("Persian Masterpiece"), theme.characters.to_charset())
        assert grid[0][0].char == "█"

    async def test_unexpected_client_error_falls_back(self) -> None:
        stub = StubThemeClient(error=OSError("socket gone"))
        assert await resolve_theme("x", client=stub) == DEFAULT_THEME

    async def test_non_ascii_api_key_falls_back(self) -> None:
        client = GeminiThemeClient(api_key="ключ", base_url="http://gemini.test/v1beta")
        assert await resolve_theme("x", client=client) == DEFAULT_THEME

    async def test_multi_character_glyph_falls_back(self) -> None:
        reply = dict(THEME_JSON, characters=dict(THEME_JSON["characters"], border="██"))
        stub = StubThemeClient(reply=json.dumps(reply))
        assert await resolve_theme("x", client=stub) == DEFAULT_THEME
