"""
Server-side tools the model can call during a session.

The ToolExecutor maps tool names to coroutines and publishes their JSON-schema
definitions for the upstream session configuration. DefaultToolExecutor carries
the bridge's built-in tools: Gmail search/read/send through the Gmail REST API
and a JSON webhook restricted to an allowlist of hosts.

Every failure is raised as ToolExecutionError; the session reports it to the
model as the call's output instead of dropping the connection.
"""

import base64
import binascii
import logging
from email.message import EmailMessage
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import ToolExecutionError
from voice_bridge.services.google_auth import GoogleCredentials

logger = logging.getLogger(LOGGER_NAME)

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
GMAIL_SEARCH_DEFAULT = 5
GMAIL_SEARCH_MAX = 20
WEBHOOK_BODY_LIMIT = 2000
METADATA_HEADERS = ["From", "Subject", "Date"]

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


# Function schemas attached to the upstream session

GMAIL_SEARCH_DEFINITION = {
    "type": "function",
    "name": "gmail_search",
    "description": "Search the connected Gmail inbox. Returns message ids, snippets and From/Subject/Date headers.",
    "parameters": {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Gmail search query, e.g. 'from:alice newer_than:7d'"},
            "maxResults": {"type": "integer", "minimum": 1, "maximum": GMAIL_SEARCH_MAX},
        },
        "required": ["query"],
    },
}

GMAIL_READ_DEFINITION = {
    "type": "function",
    "name": "gmail_read",
    "description": "Read one Gmail message by id, including its plain-text body.",
    "parameters": {
        "type": "object",
        "properties": {"id": {"type": "string", "description": "Message id from gmail_search"}},
        "required": ["id"],
    },
}

GMAIL_SEND_DEFINITION = {
    "type": "function",
    "name": "gmail_send",
    "description": "Send a plain-text email from the connected Gmail account.",
    "parameters": {
        "type": "object",
        "properties": {
            "to": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string"},
            "body": {"type": "string"},
        },
        "required": ["to", "subject", "body"],
    },
}

SEND_EMAIL_DEFINITION = {
    "type": "function",
    "name": "send_email",
    "description": "Send an email via Gmail. Use for short transactional messages.",
    "parameters": {
        "type": "object",
        "properties": {
            "to": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string"},
            "text": {"type": "string"},
            "html": {"type": "string"},
        },
        "required": ["to", "subject"],
        "additionalProperties": False,
    },
}

POST_WEBHOOK_DEFINITION = {
    "type": "function",
    "name": "post_webhook",
    "description": "POST a JSON payload to an allow-listed URL.",
    "parameters": {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "HTTPS URL (must be allow-listed)"},
            "json": {"type": "object"},
        },
        "required": ["url", "json"],
        "additionalProperties": False,
    },
}

TOOL_DEFINITIONS = [
    GMAIL_SEARCH_DEFINITION,
    GMAIL_READ_DEFINITION,
    GMAIL_SEND_DEFINITION,
    SEND_EMAIL_DEFINITION,
    POST_WEBHOOK_DEFINITION,
]


class ToolExecutor:
    """Registry of callable tools, keyed by name."""

    def __init__(self):
        self._tools: Dict[str, ToolHandler] = {}
        self._definitions: Dict[str, Dict[str, Any]] = {}

    def register(self, name: str, handler: ToolHandler, definition: Optional[Dict[str, Any]] = None) -> None:
        self._tools[name] = handler
        if definition is not None:
            self._definitions[name] = definition

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    @property
    def definitions(self) -> List[Dict[str, Any]]:
        return list(self._definitions.values())

    async def execute(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a tool.

        Raises:
            ToolExecutionError: If the tool is unknown or fails
        """
        handler = self._tools.get(name)
        if handler is None:
            raise ToolExecutionError(name, f"Unknown tool {name}")
        result = await handler(args)
        logger.info(f"Tool {name} completed")
        return result


class DefaultToolExecutor(ToolExecutor):
    """
    The bridge's built-in tools.

    Args:
        settings: Process-wide settings (Google credentials, webhook allowlist)
        http_client: Shared httpx client for all tool traffic
        credentials: Google credentials; built from settings when omitted
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        credentials: Optional[GoogleCredentials] = None,
    ):
        super().__init__()
        self.settings = settings
        self.http = http_client
        self.credentials = credentials or GoogleCredentials(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_refresh_token,
            http_client,
        )
        self.register("gmail_search", self.gmail_search, GMAIL_SEARCH_DEFINITION)
        self.register("gmail_read", self.gmail_read, GMAIL_READ_DEFINITION)
        self.register("gmail_send", self.gmail_send, GMAIL_SEND_DEFINITION)
        self.register("send_email", self.send_email, SEND_EMAIL_DEFINITION)
        self.register("post_webhook", self.post_webhook, POST_WEBHOOK_DEFINITION)

    # Gmail

    async def _gmail(self, tool_name: str, method: str, path: str, **kwargs) -> Dict[str, Any]:
        token = await self.credentials.access_token(tool_name)
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await self.http.request(method, f"{GMAIL_API_URL}{path}", headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gmail API returned {e.response.status_code}: {e.response.text}")
            raise ToolExecutionError(tool_name, f"Gmail API error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Gmail API request failed: {e}")
            raise ToolExecutionError(tool_name, f"Gmail API request failed: {e}") from e
        return response.json()

    async def gmail_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Search messages and return their metadata headers."""
        query = str(args.get("query") or "")
        max_results = _clamp_results(args.get("maxResults"))

        listing = await self._gmail(
            "gmail_search", "GET", "/messages", params={"q": query, "maxResults": max_results}
        )
        messages = []
        for item in listing.get("messages") or []:
            message_id = item.get("id")
            if not message_id:
                continue
            message = await self._gmail(
                "gmail_search",
                "GET",
                f"/messages/{message_id}",
                params={"format": "metadata", "metadataHeaders": METADATA_HEADERS},
            )
            messages.append(
                {
                    "id": message_id,
                    "snippet": message.get("snippet", ""),
                    "headers": _headers(message),
                }
            )
        return {"account": self.settings.gmail_user, "query": query, "messages": messages}

    async def gmail_read(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Read one message, with its text/plain body."""
        message_id = args.get("id")
        if not message_id:
            raise ToolExecutionError("gmail_read", "Missing required field: id")
        message = await self._gmail("gmail_read", "GET", f"/messages/{message_id}", params={"format": "full"})
        return {
            "account": self.settings.gmail_user,
            "id": message_id,
            "snippet": message.get("snippet", ""),
            "headers": _headers(message),
            "body": extract_plain_text(message),
        }

    async def gmail_send(self, args: Dict[str, Any]) -> Dict[str, Any]:
        to, subject, body = args.get("to"), args.get("subject"), args.get("body")
        if not to or not subject or body is None:
            raise ToolExecutionError("gmail_send", "Missing required email fields: to, subject and body.")
        raw = build_raw_email(self.settings.gmail_user, to, subject, str(body))
        await self._gmail("gmail_send", "POST", "/messages/send", json={"raw": raw})
        return {"sent": True, "from": self.settings.gmail_user, "to": to, "subject": subject}

    async def send_email(self, args: Dict[str, Any]) -> Dict[str, Any]:
        to, subject = args.get("to"), args.get("subject")
        text, html = args.get("text"), args.get("html")
        if not to or not subject or (not text and not html):
            raise ToolExecutionError("send_email", "Missing required email fields: to, subject, and text or html.")
        if html:
            raw = build_raw_email(self.settings.gmail_user, to, subject, str(html), subtype="html")
        else:
            raw = build_raw_email(self.settings.gmail_user, to, subject, str(text))
        sent = await self._gmail("send_email", "POST", "/messages/send", json={"raw": raw})
        return {
            "id": sent.get("id"),
            "threadId": sent.get("threadId"),
            "labelIds": sent.get("labelIds"),
            "status": "sent",
        }

    # Webhook

    def is_allowed_webhook(self, url: str) -> bool:
        try:
            hostname = urlsplit(url).hostname
        except ValueError:
            return False
        return bool(hostname) and hostname.lower() in self.settings.webhook_allowlist

    async def post_webhook(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload to an allow-listed host."""
        url = str(args.get("url") or "")
        if not self.is_allowed_webhook(url):
            raise ToolExecutionError("post_webhook", f"URL not in allowlist: {url}")
        try:
            response = await self.http.post(url, json=args.get("json") or {})
        except httpx.RequestError as e:
            logger.error(f"Webhook request to {url} failed: {e}")
            raise ToolExecutionError("post_webhook", f"Webhook request failed: {e}") from e
        return {
            "ok": response.is_success,
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "body": response.text[:WEBHOOK_BODY_LIMIT],
        }


def _clamp_results(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return GMAIL_SEARCH_DEFAULT
    return max(1, min(GMAIL_SEARCH_MAX, count))


def _headers(message: Dict[str, Any]) -> Dict[str, str]:
    headers = (message.get("payload") or {}).get("headers") or []
    return {h.get("name"): h.get("value") for h in headers if h.get("name")}


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def extract_plain_text(message: Dict[str, Any]) -> str:
    """
    Return the first text/plain body of a Gmail message.

    Single-part messages use their body directly; multipart messages are searched
    depth-first. Falls back to the snippet.
    """
    payload = message.get("payload") or {}
    if not payload.get("parts"):
        data = (payload.get("body") or {}).get("data")
        return _decode_base64url(data) if data else message.get("snippet", "")

    stack = list(payload["parts"])
    while stack:
        part = stack.pop(0)
        data = (part.get("body") or {}).get("data")
        if part.get("mimeType") == "text/plain" and data:
            return _decode_base64url(data)
        stack[:0] = part.get("parts") or []
    return message.get("snippet", "")


def build_raw_email(sender: Optional[str], to: str, subject: str, body: str, subtype: str = "plain") -> str:
    """Build an RFC 2822 message, base64url-encoded for the Gmail send API."""
    message = EmailMessage()
    if sender:
        message["From"] = sender
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body, subtype=subtype)
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
