"""Code execution service (Piston) client."""

from typing import Any, Dict, Optional

import httpx

from practice.config import get_settings
from practice.errors import UpstreamError


class ExecutionClient:
    """Client for the remote code execution service."""

    def __init__(self):
        self.settings = get_settings()
        self.base_url = self.settings.execution_base
        self.timeout = httpx.Timeout(self.settings.execution_timeout)

    async def execute(
        self, language: str, code: str, stdin: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run code and return the service's result (``run.stdout`` etc.)."""
        request = {
            "language": language,
            "version": self.settings.execution_language_version,
            "files": [{"content": code}],
            "stdin": stdin or "",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/execute",
                    json=request,
                    headers=self._get_headers(),
                )
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                "Code execution timed out",
                retryable=True,
                status_code=504,
                code="UPSTREAM_TIMEOUT",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                "Code execution failed",
                {"status": exc.response.status_code, "body": exc.response.text[:500]},
                retryable=exc.response.status_code >= 500,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "Code execution service unreachable", {"reason": str(exc)}, retryable=True
            ) from exc
        except ValueError as exc:
            raise UpstreamError("Code execution returned a non-JSON body") from exc

    def _get_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}
