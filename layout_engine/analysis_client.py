"""
Document Intelligence REST client — prebuilt-layout + prebuilt-read.

Thin wrapper: POST the document, poll the Operation-Location until the
analysis succeeds or fails, return the analyzeResult JSON untouched
(di_adapter.py turns it into engine types).

analyze_layout_and_read() requests both models concurrently and blocks until
both are done. Reconciliation needs both results; there is no partial mode.
The timeout wraps each service call; nothing is retried here.

Env:
  DOCINTEL_ENDPOINT      https://<resource>.cognitiveservices.azure.com
  DOCINTEL_API_KEY
  DOCINTEL_API_VERSION   default 2024-11-30
  DOCINTEL_TIMEOUT_S     default 120
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from .settings import (
    DEFAULT_DOCINTEL_API_VERSION,
    DEFAULT_DOCINTEL_POLL_S,
    DEFAULT_DOCINTEL_TIMEOUT_S,
    env_float,
    env_str,
)

log = logging.getLogger(__name__)

LAYOUT_MODEL = "prebuilt-layout"
READ_MODEL = "prebuilt-read"


class AnalysisServiceError(RuntimeError):
    """The external analysis could not be obtained (config, HTTP, failed status, timeout)."""


@dataclass(frozen=True)
class ServiceSettings:
    endpoint: str
    api_key: str
    api_version: str = DEFAULT_DOCINTEL_API_VERSION
    timeout_s: float = DEFAULT_DOCINTEL_TIMEOUT_S
    poll_interval_s: float = DEFAULT_DOCINTEL_POLL_S

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        endpoint = env_str("DOCINTEL_ENDPOINT")
        api_key = env_str("DOCINTEL_API_KEY")
        if not endpoint or not api_key:
            raise AnalysisServiceError("Missing DOCINTEL_ENDPOINT or DOCINTEL_API_KEY")
        return cls(
            endpoint=endpoint.rstrip("/"),
            api_key=api_key,
            api_version=env_str("DOCINTEL_API_VERSION", DEFAULT_DOCINTEL_API_VERSION) or DEFAULT_DOCINTEL_API_VERSION,
            timeout_s=env_float("DOCINTEL_TIMEOUT_S", DEFAULT_DOCINTEL_TIMEOUT_S),
        )


class DocumentAnalysisClient:
    """
    Each analyze() call opens and closes its own requests.Session. An injected
    session is shared by every call, including the two concurrent ones in
    analyze_layout_and_read(), and must be thread-safe.
    """

    def __init__(self, settings: ServiceSettings, session: Optional[Any] = None) -> None:
        self.settings = settings
        self.session = session

    def _analyze_url(self, model_id: str) -> str:
        s = self.settings
        return f"{s.endpoint}/documentintelligence/documentModels/{model_id}:analyze?api-version={s.api_version}"

    def _headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        h = {"Ocp-Apim-Subscription-Key": self.settings.api_key}
        if content_type:
            h["Content-Type"] = content_type
        return h

    def analyze(self, model_id: str, document: bytes, content_type: str = "application/octet-stream") -> Dict[str, Any]:
        """Run one model to completion and return its analyzeResult."""
        if self.session is not None:
            return self._analyze(self.session, model_id, document, content_type)
        with requests.Session() as session:
            return self._analyze(session, model_id, document, content_type)

    def _analyze(self, session: Any, model_id: str, document: bytes, content_type: str) -> Dict[str, Any]:
        deadline = time.monotonic() + self.settings.timeout_s
        log.info("Submitting %s (%d bytes, %s)", model_id, len(document), content_type)

        try:
            resp = session.post(
                self._analyze_url(model_id),
                headers=self._headers(content_type),
                data=document,
                timeout=self.settings.timeout_s,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise AnalysisServiceError(f"{model_id}: submit failed: {e}") from e

        op_url = resp.headers.get("Operation-Location") or resp.headers.get("operation-location")
        if not op_url:
            raise AnalysisServiceError(f"{model_id}: response has no Operation-Location header")

        attempt = 0
        while True:
            attempt += 1
            try:
                poll = session.get(op_url, headers=self._headers(), timeout=self.settings.timeout_s)
                poll.raise_for_status()
                body = poll.json()
            except (requests.RequestException, ValueError) as e:
                raise AnalysisServiceError(f"{model_id}: poll failed: {e}") from e

            status = str(body.get("status", "")).lower()
            log.debug("%s poll #%d: status=%s", model_id, attempt, status)
            if status == "succeeded":
                result = body.get("analyzeResult")
                if not isinstance(result, dict):
                    raise AnalysisServiceError(f"{model_id}: succeeded without analyzeResult")
                log.info("%s succeeded after %d polls", model_id, attempt)
                return result
            if status in ("failed", "canceled"):
                err = body.get("error") or {}
                raise AnalysisServiceError(f"{model_id}: analysis {status}: {err.get('message', err)}")
            if time.monotonic() >= deadline:
                raise AnalysisServiceError(f"{model_id}: timed out after {self.settings.timeout_s}s")
            time.sleep(self.settings.poll_interval_s)

    def analyze_layout_and_read(
        self,
        document: bytes,
        content_type: str = "application/octet-stream",
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Both analyses in parallel; returns (layout, read) once both are done."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            layout_f = pool.submit(self.analyze, LAYOUT_MODEL, document, content_type)
            read_f = pool.submit(self.analyze, READ_MODEL, document, content_type)
            layout = layout_f.result()
            read = read_f.result()
        return layout, read


__all__ = [
    "LAYOUT_MODEL",
    "READ_MODEL",
    "AnalysisServiceError",
    "ServiceSettings",
    "DocumentAnalysisClient",
]
