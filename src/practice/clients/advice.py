"""Advice (LLM tutoring) API client."""

import json
from typing import Any, Dict

import httpx
import pydantic

from practice.config import get_settings
from practice.errors import ParseError, UpstreamError
from practice.schemas.advice import AdviceResult


class AdviceClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(self):
        self.settings = get_settings()
        self.base_url = self.settings.advice_base
        self.model = self.settings.advice_model
        self.timeout = httpx.Timeout(self.settings.advice_timeout)

    async def get_advice(self, prompt: str) -> Dict[str, Any]:
        """Send a rendered prompt and return the validated advice object.

        The returned dict is the model's JSON exactly as parsed; it has
        been checked against ``AdviceResult`` but not rewritten.
        """
        request = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=request,
                    headers=self._get_headers(),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                "Advice service timed out",
                retryable=True,
                status_code=504,
                code="UPSTREAM_TIMEOUT",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                "Advice service returned an error",
                {"status": exc.response.status_code, "body": exc.response.text[:500]},
                retryable=exc.response.status_code == 429 or exc.response.status_code >= 500,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "Advice service unreachable", {"reason": str(exc)}, retryable=True
            ) from exc
        except ValueError as exc:
            raise UpstreamError("Advice service returned a non-JSON body") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Advice service response has no message content") from exc

        return parse_advice(content)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.advice_api_key}",
            "Content-Type": "application/json",
        }


def parse_advice(content: Any) -> Dict[str, Any]:
    """Parse model output into an advice dict, or raise ``ParseError``."""
    try:
        advice = json.loads(content)
    except (TypeError, ValueError) as exc:
        raise ParseError(
            "Advice service returned malformed JSON",
            status_code=502,
            code="ADVICE_MALFORMED",
        ) from exc

    try:
        AdviceResult.model_validate(advice)
    except pydantic.ValidationError as exc:
        raise ParseError(
            "Advice service returned an unexpected structure",
            {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
            status_code=502,
            code="ADVICE_MALFORMED",
        ) from exc
    return advice
