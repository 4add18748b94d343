# paper_kb/llm/client.py
"""
Minimal client for an OpenAI-compatible chat completions endpoint
(Ollama, LM Studio, vLLM, OpenAI itself).

Whatever shape a backend answers with, callers only ever see
`LLMResponse.text`: see `normalize_llm_output`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from paper_kb.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>.*?</think>", re.S)


class LLMClientError(Exception):
    """
    Anything that goes wrong talking to the LLM endpoint.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


@dataclass
class LLMResponse:
    text: str
    model: Optional[str] = None
    raw: Any = None


def normalize_llm_output(output: Any) -> str:
    """
    Collapse the response shapes seen in the wild into plain text:

    - a bare string
    - a mapping with a "response" key (Ollama /api/generate, Workers AI)
    - an object with a `.response` attribute
    - an OpenAI chat completion: {"choices": [{"message": {"content": ...}}]}

    Anything else normalizes to "".
    """
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    if isinstance(output, dict):
        if "response" in output:
            value = output["response"]
            return value if isinstance(value, str) else ""
        choices = output.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0] or {}
            message = first.get("message") or {}
            content = message.get("content")
            if isinstance(content, str):
                return content
            text = first.get("text")
            return text if isinstance(text, str) else ""
        return ""
    value = getattr(output, "response", None)
    if isinstance(value, str):
        return value
    return ""


def extract_json_text(text: str) -> str:
    """
    Strip reasoning tags and markdown fences and return the outermost
    JSON object in `text` (or the stripped text if there is none).
    """
    text = _THINK_RE.sub("", text or "").strip()

    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]

    start = text.find("{")
    end = text.rfind("}") + 1
    if start != -1 and end > start:
        return text[start:end]
    return text.strip()


class LLMClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        s = settings or get_settings()
        self.base_url = s.LLM_BASE_URL.rstrip("/")
        self.model = s.LLM_MODEL
        self.temperature = s.LLM_TEMPERATURE
        self.timeout = s.LLM_TIMEOUT
        self.session = session or requests.Session()

        if s.LLM_API_KEY is not None:
            self.session.headers["Authorization"] = f"Bearer {s.LLM_API_KEY.get_secret_value()}"

        logger.info("LLMClient initialized: model=%s, base_url=%s", self.model, self.base_url)

    def run(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        url = f"{self.base_url}/chat/completions"

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }

        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise LLMClientError(f"Error contacting LLM at {url}: {e}", url=url) from e

        if resp.status_code != 200:
            raise LLMClientError(
                f"LLM error {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
                url=url,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMClientError(f"LLM returned non-JSON body: {resp.text[:200]}", url=url) from e

        model = data.get("model", self.model) if isinstance(data, dict) else self.model
        return LLMResponse(text=normalize_llm_output(data), model=model, raw=data)
