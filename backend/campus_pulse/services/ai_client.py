"""
Generative-text client: Oracle OCI request-signing, Anthropic as the alternative.

Primary provider:
  Oracle Generative AI Inference via OCI SDK + signed requests using ~/.oci/config.

Alternative:
  Anthropic (only when OCI is not configured).

One AIClient is built per process in the app lifespan and handed to the
analysis pipeline, so tests can swap in a fake with the same chat() coroutine.
"""

import json
import asyncio
import logging
from pathlib import Path

import anthropic
import oci

from campus_pulse.config import Settings

logger = logging.getLogger(__name__)


class AINotConfiguredError(RuntimeError):
    """Raised when neither OCI nor Anthropic credentials are set."""


# ─────────────────────────────────────────────────────────────────────────────
# Request / response builders
# ─────────────────────────────────────────────────────────────────────────────

def is_cohere(model_id: str, api_format: str) -> bool:
    forced = api_format.strip().upper()
    if forced == "COHERE":
        return True
    if forced == "GENERIC":
        return False
    return model_id.lower().startswith("cohere.")


def build_chat_body(
    model_id: str,
    api_format: str,
    compartment_id: str,
    system: str,
    messages: list[dict],
    max_tokens: int,
    temperature: float,
) -> dict:
    """Build JSON body for POST /20231130/actions/chat."""
    serving_mode = {"servingType": "ON_DEMAND", "modelId": model_id}

    if is_cohere(model_id, api_format):
        # Cohere: single "message" string + optional history + preamble
        history = []
        for m in messages[:-1]:
            role = "USER" if m.get("role", "user") == "user" else "CHATBOT"
            history.append({"role": role, "message": m.get("content", "")})

        last_msg = messages[-1].get("content", "") if messages else ""
        chat_req: dict = {
            "apiFormat": "COHERE",
            "message": last_msg,
            "maxTokens": max_tokens,
            "temperature": temperature,
            "isStream": False,
        }
        if system:
            chat_req["preambleOverride"] = system
        if history:
            chat_req["chatHistory"] = history
    else:
        # Generic / Llama: messages array + systemMessage
        oci_msgs = [
            {
                "role": "USER" if m.get("role", "user") == "user" else "ASSISTANT",
                "content": [{"type": "TEXT", "text": m.get("content", "")}],
            }
            for m in messages
        ]
        chat_req = {
            "apiFormat": "GENERIC",
            "messages": oci_msgs,
            "maxTokens": max_tokens,
            "temperature": temperature,
            "isStream": False,
        }
        if system:
            chat_req["systemMessage"] = system

    body: dict = {"servingMode": serving_mode, "chatRequest": chat_req}
    if compartment_id:
        body["compartmentId"] = compartment_id
    return body


def extract_text(response_json: dict) -> str:
    """Pull plain text from an /actions/chat response."""
    chat_resp = response_json.get("chatResponse", {})
    fmt = chat_resp.get("apiFormat", "GENERIC")
    if fmt == "COHERE":
        return chat_resp.get("text", "")
    choices = chat_resp.get("choices", [])
    if not choices:
        return ""
    content = choices[0].get("message", {}).get("content", [])
    if isinstance(content, list) and content:
        return content[0].get("text", "")
    return str(content)


class AIClient:
    """Chat completions against the configured provider."""

    def __init__(self, settings: Settings):
        self.settings = settings
        # One HTTP pool for every Anthropic call; closed in aclose()
        self._anthropic = None
        if settings.ANTHROPIC_API_KEY:
            self._anthropic = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)

    async def aclose(self) -> None:
        if self._anthropic is not None:
            await self._anthropic.close()

    # ── Status ──────────────────────────────────────────────────────────────

    @property
    def oracle_configured(self) -> bool:
        s = self.settings
        return bool(s.OCI_CONFIG_FILE and s.OCI_CONFIG_PROFILE and s.ORACLE_GENAI_MODEL and s.ORACLE_GENAI_COMPARTMENT_ID)

    @property
    def anthropic_configured(self) -> bool:
        return self._anthropic is not None

    def provider_name(self) -> str:
        if self.oracle_configured:
            return f"Oracle GenAI OCI-Signed ({self.settings.ORACLE_GENAI_MODEL})"
        if self.anthropic_configured:
            return f"Anthropic ({self.settings.ANTHROPIC_MODEL})"
        return "none"

    async def health_check(self) -> dict:
        """Live connectivity test: called by /api/health/ai."""
        provider = self.provider_name()
        if provider == "none":
            return {
                "provider": "none",
                "status": "unconfigured",
                "message": (
                    "Set OCI_CONFIG_FILE, OCI_CONFIG_PROFILE, ORACLE_GENAI_COMPARTMENT_ID "
                    "and ORACLE_GENAI_MODEL (or ANTHROPIC_API_KEY) in backend/.env."
                ),
            }

        try:
            reply = await self.chat(
                system="You are a test assistant.",
                messages=[{"role": "user", "content": "Reply with exactly: OK"}],
                max_tokens=10,
                temperature=0.0,
            )
            return {"provider": provider, "status": "ok", "test_reply": reply.strip()}
        except Exception as e:
            logger.warning("AI health check failed: %s", e)
            return {"provider": provider, "status": "error", "error": str(e)}

    # ── Oracle GenAI ────────────────────────────────────────────────────────

    def _oci_config(self) -> dict:
        cfg_file = str(Path(self.settings.OCI_CONFIG_FILE).expanduser())
        return oci.config.from_file(file_location=cfg_file, profile_name=self.settings.OCI_CONFIG_PROFILE)

    def _oci_endpoint(self, cfg: dict) -> str:
        if self.settings.ORACLE_GENAI_BASE_URL:
            return self.settings.ORACLE_GENAI_BASE_URL.rstrip("/")
        region = cfg.get("region", "us-chicago-1")
        return f"https://inference.generativeai.{region}.oci.oraclecloud.com"

    def _oci_post(self, path: str, body: dict, timeout: tuple = (10.0, 300.0)) -> dict:
        """Perform a signed POST request via OCI base client and return JSON dict."""
        cfg = self._oci_config()
        client = oci.generative_ai_inference.GenerativeAiInferenceClient(
            config=cfg,
            service_endpoint=self._oci_endpoint(cfg),
            timeout=timeout,
        )
        response = client.base_client.call_api(
            resource_path=path,
            method="POST",
            header_params={"content-type": "application/json"},
            body=body,
            response_type="str",
        )
        text = response.data if isinstance(response.data, str) else str(response.data)
        return json.loads(text)

    async def _oracle_chat(self, system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
        s = self.settings
        body = build_chat_body(
            s.ORACLE_GENAI_MODEL,
            s.ORACLE_GENAI_API_FORMAT,
            s.ORACLE_GENAI_COMPARTMENT_ID,
            system,
            messages,
            max_tokens,
            temperature,
        )
        # OCI SDK already prefixes the API version path (/20231130).
        data = await asyncio.to_thread(self._oci_post, "/actions/chat", body)
        return extract_text(data)

    # ── Anthropic ───────────────────────────────────────────────────────────

    async def _anthropic_chat(self, system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
        kwargs: dict = {
            "model": self.settings.ANTHROPIC_MODEL,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        try:
            response = await self._anthropic.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise RuntimeError(f"Anthropic error: {e}") from e
        return response.content[0].text

    # ── Public entry point ──────────────────────────────────────────────────

    async def chat(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 400,
        temperature: float = 0.7,
    ) -> str:
        """
        Send a chat completion request.

        Provider priority:
          1. Oracle GenAI (OCI signed): when OCI config + compartment + model are set
          2. Anthropic    : when ANTHROPIC_API_KEY is set

        Anthropic is never a silent fallback when Oracle is configured; Oracle
        errors are raised to the caller.
        """
        if self.oracle_configured:
            return await self._oracle_chat(system, messages, max_tokens, temperature)

        if self.anthropic_configured:
            return await self._anthropic_chat(system, messages, max_tokens, temperature)

        raise AINotConfiguredError(
            "No generative-text provider configured; set ORACLE_GENAI_COMPARTMENT_ID or ANTHROPIC_API_KEY."
        )
