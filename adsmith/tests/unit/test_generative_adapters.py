"""
Tests for the text, portrait and style collaborator adapters.
"""

import json
import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from adsmith.services.generative.base import (
    PersonaTextRequest,
    PortraitRequest,
    StyleRecord,
    choose_style,
    extract_personas,
    extract_portrait_url,
)
from adsmith.services.generative.exceptions import (
    CollaboratorUnavailable,
    GenerationFailed,
    MalformedResponse,
    PortraitGenerationFailed,
    StyleUnavailable,
)
from adsmith.services.generative.openai_persona_service import (
    OpenAIPersonaService,
    build_persona_prompt,
)
from adsmith.services.generative.portrait_http_service import HttpPortraitService
from adsmith.services.generative.style_catalog import (
    DEFAULT_STYLES,
    HttpStyleCatalog,
    StaticStyleCatalog,
)


def _chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def text_request():
    return PersonaTextRequest(
        offering_description="cold brew coffee",
        count=2,
        country="US",
        organization_context="Organization: Bean Co",
        offering_context="Key selling points: smooth",
    )


class TestExtractPersonas:
    def test_personas_key(self):
        assert extract_personas({"personas": [{"gender": "Men"}]}) == [{"gender": "Men"}]

    def test_customer_personas_key(self):
        assert extract_personas({"customer_personas": [{"gender": "Women"}]}) == [{"gender": "Women"}]

    def test_bare_array(self):
        assert extract_personas([{"gender": "Men"}, "junk"]) == [{"gender": "Men"}]

    @pytest.mark.parametrize(
        "payload",
        [{"error": "quota"}, {"something": []}, {"personas": "nope"}, "text", None],
    )
    def test_unusable_payload_is_generation_failure(self, payload):
        with pytest.raises(GenerationFailed):
            extract_personas(payload)


class TestExtractPortraitUrl:
    def test_image_url_shape(self):
        assert extract_portrait_url({"imageUrl": "https://a.example/x.png"}) == "https://a.example/x.png"

    def test_nested_data_shape(self):
        payload = {"data": [{"url": "https://a.example/y.png"}, {"url": "https://a.example/z.png"}]}
        assert extract_portrait_url(payload) == "https://a.example/y.png"

    def test_snake_case_shape(self):
        assert extract_portrait_url({"image_url": "https://a.example/w.png"}) == "https://a.example/w.png"

    @pytest.mark.parametrize(
        "payload",
        [
            {"error": "content policy"},
            {"success": False, "error": "busy"},
            {"imageUrl": ""},
            {"data": []},
            {"data": [{"b64": "..."}]},
            {},
        ],
    )
    def test_failure_shapes(self, payload):
        with pytest.raises(PortraitGenerationFailed):
            extract_portrait_url(payload)

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedResponse):
            extract_portrait_url(["https://a.example/x.png"])


class TestStyles:
    def test_choose_style_ignores_status(self):
        records = [StyleRecord("Vintage", "inactive")]
        assert choose_style(records, random.Random(1)) == "Vintage"

    def test_choose_style_is_uniform_over_records(self):
        records = [StyleRecord(name) for name in ("A", "B", "C")]
        generator = random.Random(4)
        assert {choose_style(records, generator) for _ in range(100)} == {"A", "B", "C"}

    def test_empty_catalog_is_style_unavailable(self):
        with pytest.raises(StyleUnavailable):
            choose_style([], random.Random(1))

    @pytest.mark.asyncio
    async def test_static_catalog_defaults(self):
        records = await StaticStyleCatalog().fetch_styles()
        assert [r.name for r in records] == DEFAULT_STYLES
        assert len(records) == 8

    @pytest.mark.asyncio
    async def test_http_catalog_reads_rows(self):
        def handler(request):
            assert request.headers["apikey"] == "secret"
            return httpx.Response(
                200,
                json=[
                    {"style_name": "Cinematic", "style_status": "active"},
                    {"style_name": "Noir", "style_status": "inactive"},
                    {"style_name": ""},
                ],
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        catalog = HttpStyleCatalog("https://db.example/rest/v1/styles", "secret", client=client)
        records = await catalog.fetch_styles()
        assert records == [StyleRecord("Cinematic", "active"), StyleRecord("Noir", "inactive")]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_catalog_server_error(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        catalog = HttpStyleCatalog("https://db.example/rest/v1/styles", client=client)
        with pytest.raises(CollaboratorUnavailable):
            await catalog.fetch_styles()
        await client.aclose()


class TestHttpPortraitService:
    @pytest.mark.asyncio
    async def test_posts_prompt_and_resolution(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"imageUrl": "https://img.example/1.png"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = HttpPortraitService("https://gen.example/portrait", "key-1", client=client)
        payload = await service.generate_portrait(PortraitRequest("a prompt", "RESOLUTION_896_1120"))

        assert payload == {"imageUrl": "https://img.example/1.png"}
        assert seen["body"] == {"prompt": "a prompt", "resolution": "RESOLUTION_896_1120"}
        assert seen["auth"] == "Bearer key-1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_status_is_collaborator_unavailable(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))
        )
        service = HttpPortraitService("https://gen.example/portrait", client=client)
        with pytest.raises(CollaboratorUnavailable):
            await service.generate_portrait(PortraitRequest("p"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_collaborator_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = HttpPortraitService("https://gen.example/portrait", client=client)
        with pytest.raises(CollaboratorUnavailable):
            await service.generate_portrait(PortraitRequest("p"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>"))
        )
        service = HttpPortraitService("https://gen.example/portrait", client=client)
        with pytest.raises(MalformedResponse):
            await service.generate_portrait(PortraitRequest("p"))
        await client.aclose()


class TestOpenAIPersonaService:
    def _service(self, create):
        client = MagicMock()
        client.chat.completions.create = create
        return OpenAIPersonaService(api_key="test", client=client), client

    def test_prompt_mentions_count_and_context(self, text_request):
        prompt = build_persona_prompt(text_request)
        assert "Generate 2 target customer personas" in prompt
        assert "cold brew coffee" in prompt
        assert "Organization: Bean Co" in prompt
        assert "US" in prompt

    @pytest.mark.asyncio
    async def test_returns_persona_records(self, text_request):
        body = json.dumps({"personas": [{"gender": "Men", "ageMin": 20, "ageMax": 30, "interests": ["a", "b"]}]})
        service, client = self._service(AsyncMock(return_value=_chat_response(body)))

        records = await service.generate_personas(text_request)

        assert records[0]["gender"] == "Men"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_api_error_is_generation_failed(self, text_request):
        service, _ = self._service(AsyncMock(side_effect=openai.OpenAIError("quota exceeded")))
        with pytest.raises(GenerationFailed):
            await service.generate_personas(text_request)

    @pytest.mark.asyncio
    async def test_invalid_json_is_generation_failed(self, text_request):
        service, _ = self._service(AsyncMock(return_value=_chat_response("{not json")))
        with pytest.raises(GenerationFailed):
            await service.generate_personas(text_request)

    @pytest.mark.asyncio
    async def test_empty_content_is_generation_failed(self, text_request):
        service, _ = self._service(AsyncMock(return_value=_chat_response(None)))
        with pytest.raises(GenerationFailed):
            await service.generate_personas(text_request)
