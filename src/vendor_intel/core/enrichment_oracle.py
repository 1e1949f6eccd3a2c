"""
Enrichment oracle: an optional LLM advisory call used by the checkers.

The oracle receives a role prompt (persona plus the JSON shape it must return)
and a data prompt (facts about the submission). It is pure enrichment: every
caller treats a failure, a timeout or a missing oracle as "analysis
unavailable" and carries on with its rule-based result.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import google.generativeai as genai  # type: ignore
import typer
from pydantic import ValidationError

from .config_loader import API_KEYS, CONFIG
from .schemas import OracleAdvisory, OracleConfig
from .utils import console

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


class OracleError(Exception):
    """Raised when the oracle cannot produce an answer (transport, timeout, setup)."""


class EnrichmentOracle(ABC):
    """Abstract base class for an advisory oracle."""

    @abstractmethod
    async def consult(self, role_prompt: str, data_prompt: str) -> OracleAdvisory:
        """
        Returns a structured advisory, or raises OracleError.
        Malformed answers are not errors: they degrade via parse_advisory().
        """
        pass


def parse_advisory(content: str) -> OracleAdvisory:
    """
    Parses an oracle response into an OracleAdvisory.

    JSON wrapped in Markdown code fences is unwrapped first. Anything that is
    not a JSON object matching the advisory shape degrades to a single
    low-confidence finding holding the raw text, with a neutral score of 50.

    Args:
        content (str): The raw text returned by the model.

    Returns:
        OracleAdvisory: The parsed or degraded advisory.
    """
    match = _FENCED_JSON_RE.search(content)
    json_string = match.group(1) if match else content.strip()
    try:
        data = json.loads(json_string)
        if not isinstance(data, dict):
            raise ValueError("oracle response is not a JSON object")
        return OracleAdvisory.model_validate(data)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError subclass.
        logger.warning("Could not parse oracle response as an advisory: %s", e)
        return OracleAdvisory(
            findings=[content],
            risk_indicators=[],
            score=50,
            confidence="low",
            raw_response=content,
        )


class GeminiOracle(EnrichmentOracle):
    """
    Asynchronous oracle backed by the Gemini API.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: float = 30.0,
    ):
        if not api_key:
            raise OracleError("GOOGLE_API_KEY not found in your environment configuration.")
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model)
        self.timeout = timeout

    async def consult(self, role_prompt: str, data_prompt: str) -> OracleAdvisory:
        full_prompt = (
            f"{role_prompt}\n\n"
            f"{data_prompt}\n\n"
            "Respond with a single JSON object only."
        )
        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(full_prompt), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise OracleError(
                f"Oracle request timed out after {self.timeout:.0f}s"
            ) from e
        except Exception as e:
            raise OracleError(f"Oracle request failed: {e}") from e
        try:
            text = response.text
        except Exception as e:
            # Blocked or empty candidates raise on .text
            raise OracleError(f"Oracle returned no usable content: {e}") from e
        return parse_advisory(text)


def build_oracle(
    config: Optional[OracleConfig] = None, api_key: Optional[str] = None
) -> Optional[EnrichmentOracle]:
    """
    Creates the configured oracle, or returns None when the oracle is
    disabled or no API key is available.
    """
    config = config or CONFIG.oracle
    api_key = api_key if api_key is not None else getattr(API_KEYS, "google_api_key", None)
    if not config.enabled:
        logger.info("Enrichment oracle disabled by configuration.")
        return None
    if not api_key:
        logger.warning("GOOGLE_API_KEY not configured. Enrichment oracle unavailable.")
        return None
    try:
        return GeminiOracle(api_key=api_key, model=config.model, timeout=config.timeout)
    except Exception as e:
        logger.error("Failed to configure enrichment oracle: %s", e)
        return None


async def verify_oracle_connection(oracle: Optional[EnrichmentOracle]) -> bool:
    """Round-trips a trivial prompt to confirm the oracle is reachable."""
    if oracle is None:
        return False
    try:
        advisory = await oracle.consult(
            'You are a helpful assistant. Return JSON with a single field "status" set to "connected".',
            "Test connection",
        )
    except OracleError as e:
        logger.error("Oracle connection test failed: %s", e)
        return False
    return advisory.status == "connected"


# --- Typer CLI Application ---


oracle_app = typer.Typer()


@oracle_app.command("check")
def check_oracle_command():
    """
    Verifies that the configured enrichment oracle answers.
    """
    oracle = build_oracle()
    if oracle is None:
        console.print(
            "[bold yellow]Enrichment oracle is disabled or GOOGLE_API_KEY is not set.[/bold yellow]"
        )
        raise typer.Exit(code=1)
    if asyncio.run(verify_oracle_connection(oracle)):
        console.print(f"[bold green]Oracle connected ({CONFIG.oracle.model}).[/bold green]")
    else:
        console.print("[bold red]Oracle connection test failed.[/bold red]")
        raise typer.Exit(code=1)
