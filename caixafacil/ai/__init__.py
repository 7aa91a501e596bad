"""
Chat-completion providers and the prompt layers built on them.

Providers only turn a list of chat messages into a reply string; the
categorizer and the advisor decide what to send and how to read the answer.
"""
import json
import logging
import os
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Protocol

from huggingface_hub import InferenceClient

logger = logging.getLogger(__name__)

OLLAMA_CHAT_URL = "http://localhost:11434/api/chat"
OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
REQUEST_TIMEOUT = 60


class LLMProvider(Protocol):
    def generate(self, messages: List[dict]) -> str:
        """Reply to an OpenAI-style list of ``{"role", "content"}`` messages."""


@dataclass
class LLMClient:
    """Delegates chat requests to the configured provider."""
    provider: LLMProvider | None = None

    def __post_init__(self) -> None:
        if self.provider is None:
            self.provider = get_provider_from_env()

    def chat(self, messages: List[dict]) -> str:
        logger.debug("LLM request via %s (%d message(s))", type(self.provider).__name__, len(messages))
        return self.provider.generate(messages)


def _post_json(url: str, payload: dict, headers: dict | None = None, timeout: int = REQUEST_TIMEOUT) -> dict:
    req = urllib.request.Request(url, data=json.dumps(payload).encode(), method="POST")
    req.add_header("Content-Type", "application/json")
    for name, value in (headers or {}).items():
        req.add_header(name, value)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode()
    except urllib.error.HTTPError as e:
        raise RuntimeError(f"LLM endpoint {url} answered HTTP {e.code}") from e
    logger.debug("LLM response body: %s", body)
    return json.loads(body)


@dataclass
class OpenAIProvider:
    """Chat Completions over plain HTTP."""
    model: str
    api_key: str
    temperature: float = 0.2
    url: str = OPENAI_CHAT_URL

    def generate(self, messages: List[dict]) -> str:
        data = _post_json(
            self.url,
            {"model": self.model, "messages": messages, "temperature": self.temperature},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected OpenAI response: {data}") from e


@dataclass
class OllamaProvider:
    """Local models served by Ollama's ``/api/chat``."""
    model: str
    url: str = OLLAMA_CHAT_URL

    def generate(self, messages: List[dict]) -> str:
        data = _post_json(self.url, {"model": self.model, "messages": messages, "stream": False})
        # older servers return the text directly under "message"
        reply = data.get("message", "")
        if isinstance(reply, dict):
            reply = reply.get("content", "")
        if not isinstance(reply, str):
            raise RuntimeError(f"Unexpected Ollama response: {data}")
        return reply.strip()


@dataclass
class HuggingFaceProvider:
    """Hugging Face Inference Providers through ``huggingface_hub``."""
    model: str
    token: str | None = None
    inference_provider: str = "auto"

    def __post_init__(self) -> None:
        self._client = InferenceClient(provider=self.inference_provider, api_key=self.token)

    def generate(self, messages: List[dict]) -> str:
        completion = self._client.chat_completion(messages=messages, model=self.model)
        return (completion.choices[0].message.content or "").strip()


def get_provider_from_env() -> LLMProvider:
    """
    Build the provider named by ``CAIXAFACIL_LLM_PROVIDER`` (``openai`` by
    default, ``ollama`` or ``huggingface``). Raises RuntimeError when it
    cannot be configured, which callers treat as "no LLM available".
    """
    name = os.environ.get("CAIXAFACIL_LLM_PROVIDER", "openai").strip().lower()
    model = os.environ.get("CAIXAFACIL_LLM_MODEL")

    if name == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set")
        return OpenAIProvider(model=model or "gpt-4o-mini", api_key=api_key)

    if name == "ollama":
        return OllamaProvider(
            model=model or "llama3.1:8b",
            url=os.environ.get("OLLAMA_URL", OLLAMA_CHAT_URL),
        )

    if name == "huggingface":
        return HuggingFaceProvider(
            model=model or "Qwen/Qwen3-32B",
            token=os.environ.get("HF_API_TOKEN"),
            inference_provider=os.environ.get("HF_INFERENCE_PROVIDER", "auto"),
        )

    raise RuntimeError(f"Unknown LLM provider '{name}'")


class BaseAIOutput(ABC):
    """Composable layer for building prompts and parsing LLM responses."""

    @abstractmethod
    def build_messages(self, context: dict, question: str) -> List[dict]:
        """Return chat messages describing the task."""

    def post_process(self, response: str) -> str:
        return response

    def generate(self, context: dict, question: str, client: LLMClient | None = None) -> str:
        client = client or LLMClient()
        messages = self.build_messages(context, question)
        try:
            out = client.chat(messages)
        except Exception as e:
            logger.error("LLM request failed: %s", e)
            return f"Erro ao contatar o assistente: {e}"
        return self.post_process(out)


ADVISOR_PERSONA = """Você é o FLÁVIO, um consultor financeiro especializado em pequenos e médios negócios brasileiros, com mais de 15 anos de experiência.

Como você trabalha:
- Olha os dados com a experiência de quem já viu muitos casos e é proativo: se vê algo preocupante, avisa antes que vire problema.
- Dá conselhos práticos, baseados na realidade brasileira, em linguagem clara.
- Estrutura as análises em: o que viu nos dados, diagnóstico (bom, preocupante ou crítico), 3 a 5 recomendações concretas em ordem de prioridade, como fazer e como medir.
- É profissional mas humano, empático mas honesto, e termina com uma pergunta ou a próxima ação.
- Quando falta informação, diz exatamente o que precisa saber.

Valores monetários estão em reais (R$). Despesas aparecem com valor negativo."""


class AdvisorReport(BaseAIOutput):
    """Financial-advisor persona answering questions about the business's numbers."""

    def build_messages(self, context: dict, question: str) -> List[dict]:
        system = ADVISOR_PERSONA
        business = context.get("business_context")
        if business:
            system += "\n\nContexto do negócio:\n" + json.dumps(business, ensure_ascii=False, indent=2)
        data = {k: v for k, v in context.items() if k not in ("business_context", "history")}
        system += "\n\nDados financeiros atuais:\n" + json.dumps(data, ensure_ascii=False, indent=2, default=str)

        messages = [{"role": "system", "content": system}]
        messages.extend(context.get("history") or [])
        messages.append({"role": "user", "content": question})
        return messages


def ask_advisor(context: dict, question: str, provider: LLMProvider | None = None) -> str:
    """Convenience wrapper returning the advisor's answer."""
    client = LLMClient(provider)
    return AdvisorReport().generate(context, question, client)
