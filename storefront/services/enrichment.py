"""Best-effort product enrichment through a generative-text API."""

import json
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI

ENRICHED_FIELDS = ("title", "description", "category", "estimated_price", "image_search_term")

DEFAULT_PITCH = "Confira esta oferta incrível selecionada para você!"
FAILURE_PITCH = (
    "Confira esta oferta incrível que separamos hoje para você. "
    "Qualidade garantida e o melhor preço do mercado!"
)
# Pitches returned when nothing was generated; callers do not cache them
FALLBACK_PITCHES = (DEFAULT_PITCH, FAILURE_PITCH)

ENRICH_PROMPT = """
Analise este link de produto e gere detalhes de marketing em português: {url}

Responda somente com um objeto JSON com as chaves:
{{
  "title": "string",
  "description": "string",
  "category": "string",
  "estimated_price": "string, ex.: R$ 199,90",
  "image_search_term": "string"
}}
"""

PITCH_PROMPT = """
Crie um texto curto (máximo 300 caracteres), persuasivo e empolgante para vender este produto: "{title}".
Use gatilhos mentais de benefício e prova social. Baseie-se nesta descrição: {description}.
O texto deve ser voltado para convencer o cliente a comprar agora. Responda apenas com o texto de vendas pronto, sem aspas.
"""


def get_openai_client(api_key: str) -> Optional[AsyncOpenAI]:
    """Get OpenAI client, or None for missing/placeholder keys."""
    if not api_key or "your_" in api_key or api_key == "test-key":
        return None
    return AsyncOpenAI(api_key=api_key)


def should_auto_enrich(url: str, current_title: str, domains: List[str]) -> bool:
    """Whether a pasted URL should trigger auto-fill.

    Only marketplace links are enriched, and only while no title was typed.
    """
    if not url or (current_title or "").strip():
        return False
    lowered = url.lower()
    return any(domain in lowered for domain in domains)


class EnrichmentClient:
    """Fills product fields and writes pitch copy. Never raises.

    Args:
        api_key: API key; without one every call returns fallback content
        model: Chat model name
        client: Optional pre-built client (anything exposing
            ``chat.completions.create``)
    """

    def __init__(self, api_key: str = "", model: str = "gpt-4o-mini", client: Any = None):
        self.model = model
        self.client = client if client is not None else get_openai_client(api_key)

    async def enrich(self, url: str) -> Dict[str, str]:
        """Suggest title, description, category and price for a product URL.

        Args:
            url: Affiliate or marketplace URL

        Returns:
            Dictionary with any of the enriched fields; empty on failure
        """
        if self.client is None:
            logger.warning("Enrichment skipped: no API key configured")
            return {}

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": ENRICH_PROMPT.format(url=url)}],
                response_format={"type": "json_object"},
            )
            text = (response.choices[0].message.content or "").strip()
            if not text:
                return {}

            data = json.loads(text)
            if not isinstance(data, dict):
                return {}

            return {
                key: str(value).strip()
                for key, value in data.items()
                if key in ENRICHED_FIELDS and value not in (None, "")
            }

        except Exception as e:
            logger.error(f"Enrichment failed for {url}: {e}")
            return {}

    async def pitch(self, title: str, description: str) -> str:
        """Write a short persuasive pitch for a product.

        Returns:
            Pitch text, or a fallback sentence
        """
        if self.client is None:
            logger.warning("Pitch generation skipped: no API key configured")
            return FAILURE_PITCH

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": PITCH_PROMPT.format(title=title, description=description),
                    }
                ],
            )
            text = (response.choices[0].message.content or "").strip()
            return text or DEFAULT_PITCH

        except Exception as e:
            logger.error(f"Pitch generation failed for '{title}': {e}")
            return FAILURE_PITCH
