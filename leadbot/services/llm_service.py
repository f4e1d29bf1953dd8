# leadbot/services/llm_service.py
import logging
from typing import Dict, List, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from leadbot.core import config
from leadbot.models.chat import SENDER_USER, ChatMessage, GenerationRequest

logger = logging.getLogger("leadbot.llm")

SALES_ASSISTANT_SYSTEM_PROMPT = f"""You are {config.BRAND_NAME}'s Professional Sales Consultant - an expert, friendly, and highly knowledgeable virtual consultant.

IMPORTANT RULES (ALWAYS FOLLOW):
1. NEVER ask a question that was already answered
2. NEVER repeat previous questions in this conversation
3. Be BRIEF - maximum 2 sentences per response
4. Be PROFESSIONAL but approachable
5. ALWAYS acknowledge what the user said before moving forward
6. Ask for information in this specific order: Name -> Email -> Phone -> Project Type -> Summary
7. Never collect information beyond these 4 fields
8. Only provide budget estimates AFTER knowing the project type

Conversation stages:
- GREETING: Initial contact, no info collected
- ASK_NAME: Asking for their name
- ASK_EMAIL: Name provided, now ask for email
- ASK_PHONE: Email provided, now ask for phone
- ASK_PURPOSE: Phone provided, now ask for project type
- SUMMARY: All info collected, show summary and offer consultation
- COMPLETE: Conversation ended, user going to contact form"""


class TextGenerator(Protocol):
    def generate(self, request: GenerationRequest) -> Optional[str]:
        ...


def build_turn_prompt(user_text: str, question: str) -> str:
    return (
        f"You are {config.BRAND_NAME}'s professional virtual consultant. "
        f"The user has just told you: \"{user_text}\".\n\n"
        "Your job is to:\n"
        "1. Acknowledge what they said briefly (1 sentence)\n"
        f"2. Ask the next question naturally: {question}\n\n"
        "Keep it conversational. Be encouraging. Never repeat questions. "
        "Only ask for: name, email, phone, project type.\n"
        "Never ask for budget or other information not in those 4 fields."
    )


def trim_history(messages: List[ChatMessage], max_messages: int = config.HISTORY_WINDOW) -> List[ChatMessage]:
    if max_messages <= 0:
        return []
    return list(messages[-max_messages:])


# ---------- shared HTTP session ----------
_RETRY = Retry(
    total=config.TOTAL_RETRIES,
    connect=config.TOTAL_RETRIES,
    read=config.TOTAL_RETRIES,
    backoff_factor=config.BACKOFF_FACTOR,
    status_forcelist=(429, 500, 502, 503, 504),
    allowed_methods=("POST",),
    raise_on_status=False,
)

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        s = requests.Session()
        adapter = HTTPAdapter(max_retries=_RETRY, pool_maxsize=config.POOL_MAXSIZE)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        _session = s
    return _session


def _clean_reply(text) -> Optional[str]:
    if not isinstance(text, str):
        return None
    text = text.strip()
    return text or None


# ---------- generators ----------
class ChatCompletionsGenerator:
    """OpenAI-compatible /chat/completions client. Never raises; None means unavailable."""

    def __init__(
        self,
        api_key: str = config.LLM_API_KEY,
        url: str = config.LLM_URL,
        model: str = config.LLM_MODEL,
        temperature: float = config.LLM_TEMPERATURE,
        max_tokens: int = config.LLM_MAX_TOKENS,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._session = session

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _messages(self, request: GenerationRequest) -> List[Dict[str, str]]:
        system = SALES_ASSISTANT_SYSTEM_PROMPT + "\n\n" + request.systemPrompt
        lead = request.leadData
        system += (
            f"\n\nCurrent stage: {request.currentStage.value}"
            f"\nKnown so far: name={lead.name or '-'}, email={lead.email or '-'}, "
            f"phone={lead.phone or '-'}, project={lead.purpose or '-'}"
        )
        out = [{"role": "system", "content": system}]
        for msg in request.conversationHistory:
            role = "user" if msg.sender == SENDER_USER else "assistant"
            out.append({"role": role, "content": msg.text})
        out.append({"role": "user", "content": request.message})
        return out

    def generate(self, request: GenerationRequest) -> Optional[str]:
        if not self.api_key:
            return None

        body = {
            "model": self.model,
            "messages": self._messages(request),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        try:
            s = self._session or _get_session()
            resp = s.post(
                self.url,
                headers=self._headers(),
                json=body,
                timeout=(config.CONNECT_TIMEOUT, config.READ_TIMEOUT),
            )
            if resp.status_code >= 400:
                logger.warning("LLM HTTP %s: %s", resp.status_code, resp.text[:300])
                return None
            data = resp.json()
            content = (data.get("choices") or [{}])[0].get("message", {}).get("content")
            reply = _clean_reply(content)
            if reply is None:
                logger.warning("LLM returned empty content")
            return reply
        except Exception as e:
            logger.error("LLM error (stage=%s): %r", request.currentStage.value, e)
            return None


class RelayGenerator:
    """Posts the generation request to a chat relay endpoint that answers {reply}."""

    def __init__(self, url: str = config.CHAT_RELAY_URL, session: Optional[requests.Session] = None):
        self.url = url
        self._session = session

    def generate(self, request: GenerationRequest) -> Optional[str]:
        if not self.url:
            return None
        try:
            s = self._session or _get_session()
            resp = s.post(
                self.url,
                json=request.model_dump(mode="json"),
                timeout=(config.CONNECT_TIMEOUT, config.READ_TIMEOUT),
            )
            if resp.status_code >= 400:
                logger.warning("chat relay HTTP %s: %s", resp.status_code, resp.text[:300])
                return None
            data = resp.json()
            if not isinstance(data, dict):
                logger.warning("chat relay returned non-object body")
                return None
            return _clean_reply(data.get("reply"))
        except Exception as e:
            logger.error("chat relay error (stage=%s): %r", request.currentStage.value, e)
            return None


def build_generator() -> Optional[TextGenerator]:
    if config.CHAT_RELAY_URL:
        logger.info("text generation via relay url=%s", config.CHAT_RELAY_URL)
        return RelayGenerator()
    if config.LLM_API_KEY:
        logger.info("text generation via chat completions model=%s", config.LLM_MODEL)
        return ChatCompletionsGenerator()
    logger.info("no text generation configured; using canned questions")
    return None
