"""LLM client wrapper: OpenAI-compatible REST chat/embeddings with a g4f chat fallback."""

from __future__ import annotations

from typing import Any, MutableMapping, Sequence, TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from g4f.client import Client


class LLMError(Exception):
    """Raised when an LLM request fails."""


Message = MutableMapping[str, str]


class LLMClient:
    """Chat completions and embeddings over a REST API, g4f as chat fallback."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str,
        default_model: str,
        embedding_model: str,
        provider: str | None = None,
        timeout_s: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.provider = provider
        self.timeout_s = timeout_s
        self._g4f_client: Client | None = None

    def complete(
        self,
        prompt: str,
        system_instruction: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> str:
        """Single-turn completion with a system instruction."""
        text = self.chat(
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return text.strip()

    def chat(
        self,
        messages: Sequence[Message],
        model: str | None = None,
        timeout_s: float | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send chat messages, preferring REST API then falling back to g4f client."""
        model_name = model or self.default_model
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        errors: list[str] = []

        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens

        if self.base_url:
            try:
                response = httpx.post(
                    f"{self.base_url}/chat/completions",
                    json={"model": model_name, "messages": list(messages), **options},
                    headers=self._headers(),
                    timeout=timeout,
                )
                response.raise_for_status()
                text = self._extract_text(response.json())
                if text:
                    return text
                errors.append("REST API returned an empty response.")
            except httpx.RequestError as exc:
                errors.append(f"REST connection error: {exc}")
            except httpx.HTTPStatusError as exc:
                errors.append(f"REST API returned {exc.response.status_code}: {exc.response.text}")
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                errors.append(f"REST API response parsing error: {exc}")

        try:
            client = self._get_g4f_client()
            kwargs: dict[str, Any] = {
                "model": model_name,
                "messages": list(messages),
                "timeout": timeout,
                **options,
            }
            if self.provider:
                kwargs["provider"] = self.provider
            completion = client.chat.completions.create(**kwargs)
            text = self._extract_text(completion)
            if text:
                return text
            errors.append("g4f client returned an empty response.")
        except Exception as exc:  # noqa: BLE001 - we aggregate for user-friendly error
            errors.append(f"g4f client error: {exc}")
            raise LLMError("; ".join(errors)) from exc

        raise LLMError("; ".join(errors))

    def embed(self, texts: Sequence[str], model: str | None = None) -> list[list[float]]:
        """Return one embedding vector per input text, in input order."""
        if not texts:
            return []
        if not self.base_url:
            raise LLMError("Embeddings require LLM_BASE_URL to be configured.")

        try:
            response = httpx.post(
                f"{self.base_url}/embeddings",
                json={"model": model or self.embedding_model, "input": list(texts)},
                headers=self._headers(),
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            vectors = self._extract_embeddings(response.json())
        except httpx.RequestError as exc:
            raise LLMError(f"Embedding connection error: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMError(
                f"Embedding API returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"Embedding response parsing error: {exc}") from exc

        if len(vectors) != len(texts):
            raise LLMError(
                f"Embedding API returned {len(vectors)} vectors for {len(texts)} inputs."
            )
        return vectors

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _get_g4f_client(self) -> Client:
        if self._g4f_client is None:
            try:
                from g4f.client import Client  # type: ignore
            except ImportError as exc:  # pragma: no cover - install issue
                raise LLMError(
                    "g4f package is required for fallback mode. Install 'g4f' first."
                ) from exc
            self._g4f_client = Client()
        return self._g4f_client

    @staticmethod
    def _extract_embeddings(payload: Any) -> list[list[float]]:
        """Extract vectors from an OpenAI-like embeddings payload, honouring `index`."""
        data = payload["data"]
        ordered = sorted(data, key=lambda entry: entry.get("index", 0))
        return [[float(value) for value in entry["embedding"]] for entry in ordered]

    @staticmethod
    def _extract_text(completion: Any) -> str:
        """Extract assistant text from an OpenAI-like completion object or dict."""
        if isinstance(completion, dict):
            choices = completion.get("choices", []) or []
        else:
            choices = getattr(completion, "choices", []) or []

        if not choices:
            return ""

        first_choice = choices[0]
        message: Any
        if isinstance(first_choice, dict):
            message = first_choice.get("message", {})
        else:
            message = getattr(first_choice, "message", None)

        if isinstance(message, dict):
            content = message.get("content")
        else:
            content = getattr(message, "content", None)

        return "" if content is None else str(content)
