"""Vision planner backed by an Ollama-compatible HTTP API.

Sends a screenshot and a goal to a local vision model and turns the reply
into a VisionActionPlan. The chat endpoint is tried first; models that
answer with an empty message are retried once on the generate endpoint.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from typing import Any

import httpx

from vmrc.domain.models import Frame, VisionActionPlan
from vmrc.utils.imaging import downscale_image, image_dimensions
from vmrc.vision.parsing import VisionError, parse_vision_plan

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen3-vl:8b"
DEFAULT_BASE_URL = "http://127.0.0.1:11434"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_IMAGE_WIDTH = 1024

DEFAULT_SYSTEM_PROMPT = (
    "You are a UI automation planner. Given a screenshot and a user goal, "
    'respond with JSON only: {"summary": string, "actions": InputEvent[]} '
    "where InputEvent matches the VM remote-control schema. Use absolute "
    "pixel coordinates from the screenshot for mouse actions. Keep actions "
    "minimal and safe."
)


def resolve_base_url(base_url: str | None = None) -> str:
    """Explicit URL, else ``OLLAMA_HOST``, else the local default."""
    url = (base_url or os.environ.get("OLLAMA_HOST") or DEFAULT_BASE_URL).strip()
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


def _response_text(resp: httpx.Response, *paths: tuple[str, ...]) -> str:
    """The first string found along ``paths``, else the raw body.

    A present but empty field is returned as is so the caller can fall
    back to another endpoint.
    """
    try:
        data: Any = resp.json()
    except ValueError:
        return resp.text
    for path in paths:
        node = data
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, str):
            return node
    return resp.text


class VisionPlanner:
    """Plans input actions from a screenshot with a local vision model."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        system_prompt: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_image_width: int = DEFAULT_MAX_IMAGE_WIDTH,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._base_url = resolve_base_url(base_url)
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_image_width = max_image_width
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        return self._base_url

    async def plan(self, image: Frame | bytes, prompt: str) -> VisionActionPlan:
        """Ask the model for an action plan.

        Raises:
            VisionTimeoutError: If the whole exchange exceeds the timeout.
            VisionRequestError: If the service errors or returns nothing.
            VisionParseError: If the reply cannot be turned into a plan.
        """
        data = image.data if isinstance(image, Frame) else image
        data = await self._prepare_image(data)
        encoded = base64.b64encode(data).decode("ascii")

        try:
            text = await asyncio.wait_for(self._request(encoded, prompt), self._timeout)
        except asyncio.TimeoutError as e:
            raise VisionTimeoutError(
                f"Vision request timed out after {self._timeout}s"
            ) from e

        plan = parse_vision_plan(text)
        logger.info(
            "Vision plan from %s: %d actions%s",
            self._model,
            len(plan.actions),
            " (salvaged)" if plan.salvaged else "",
        )
        return plan

    async def health_check(self) -> bool:
        """Check that the model service answers its version endpoint."""
        try:
            async with self._client() as client:
                resp = await client.get("/api/version")
            return resp.is_success
        except httpx.HTTPError:
            return False

    async def _prepare_image(self, data: bytes) -> bytes:
        dims = image_dimensions(data)
        if dims is None or dims.width <= self._max_image_width:
            return data
        logger.debug("Downscaling %dx%d image to width %d", dims.width, dims.height, self._max_image_width)
        return await downscale_image(data, self._max_image_width)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _options(self) -> dict[str, Any] | None:
        options: dict[str, Any] = {}
        if self._temperature is not None:
            options["temperature"] = self._temperature
        if self._max_tokens is not None:
            options["num_predict"] = self._max_tokens
        return options or None

    async def _request(self, encoded: str, prompt: str) -> str:
        options = self._options()
        chat_payload: dict[str, Any] = {
            "model": self._model,
            "stream": False,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt, "images": [encoded]},
            ],
        }
        if options:
            chat_payload["options"] = options

        async with self._client() as client:
            try:
                resp = await client.post("/api/chat", json=chat_payload)
            except httpx.HTTPError as e:
                raise VisionRequestError(f"Vision request failed: {e}") from e
            if not resp.is_success:
                raise VisionRequestError(
                    f"Vision request failed: {resp.status_code} {resp.text}",
                    status_code=resp.status_code,
                )
            text = _response_text(resp, ("message", "content"), ("response",))
            if text.strip():
                return text

            logger.debug("Empty chat response from %s, trying /api/generate", self._model)
            generate_payload: dict[str, Any] = {
                "model": self._model,
                "stream": False,
                "prompt": f"{self._system_prompt}\n{prompt}",
                "images": [encoded],
            }
            if options:
                generate_payload["options"] = options
            try:
                resp = await client.post("/api/generate", json=generate_payload)
            except httpx.HTTPError as e:
                raise VisionRequestError(f"Vision request failed: {e}") from e
            text = _response_text(resp, ("response",)) if resp.is_success else ""

        if not text.strip():
            raise VisionRequestError("Vision model returned an empty response")
        return text


class VisionRequestError(VisionError):
    """Raised when the model service fails or returns no content."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VisionTimeoutError(VisionError, TimeoutError):
    """Raised when a vision request exceeds its timeout."""
