"""
Chat Service for page and project generation.

Talks to an OpenAI-compatible chat completions API to turn a user's
description into HTML, a project plan, or a multi-file project.
"""

from typing import Dict, List, Optional
import json
import httpx

from webgen.config import get_settings
from webgen.models.schemas import ProjectPlan
from webgen.utils.logger import get_logger
from webgen.utils.validators import strip_code_fence, validate_project_path

logger = get_logger("services.chat")

# Timeout settings
CONNECT_TIMEOUT = 10.0  # seconds
READ_TIMEOUT = 180.0    # seconds (whole-page completions are slow)


class ChatError(Exception):
    """Base exception for chat service errors."""
    pass


class ChatConnectionError(ChatError):
    """Raised when the chat API is unreachable."""
    pass


class ChatResponseError(ChatError):
    """Raised when the chat API reply is missing or malformed."""
    pass


class ChatService:
    """
    Service for interacting with the chat completions API.

    Attributes:
        base_url: API base URL (e.g., https://api.openai.com/v1)
        model: Default model name
        max_tokens: Completion token limit
        client: Async HTTP client for API calls
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize chat service.

        Args:
            api_key: Override config API key
            base_url: Override config base URL
            model: Override config model name
            max_tokens: Override config completion token limit
            client: Preconfigured HTTP client (tests)
        """
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.model = model or settings.chat_model
        self.max_tokens = max_tokens or settings.chat_max_tokens

        self.html_system_prompt = settings.html_system_prompt
        self.plan_system_prompt = settings.plan_system_prompt
        self.project_system_prompt = settings.project_system_prompt

        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=CONNECT_TIMEOUT,
                read=READ_TIMEOUT,
                write=30.0,
                pool=10.0,
            )
        )

        logger.info(f"ChatService initialized: {self.base_url}, model={self.model}")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Run one chat completion.

        Args:
            messages: Chat messages (role/content)
            model: Model override for this request
            json_mode: Ask the API for a JSON object reply

        Returns:
            Content of the first choice, stripped

        Raises:
            ChatConnectionError: If the API is unreachable
            ChatResponseError: If the reply has no usable choice
        """
        payload = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
            )
        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to chat API: {e}")
            raise ChatConnectionError(f"Cannot connect to chat API at {self.base_url}")
        except httpx.TimeoutException as e:
            logger.error(f"Chat request timed out: {e}")
            raise ChatConnectionError("Chat request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Chat transport error: {e}")
            raise ChatConnectionError(f"Chat request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Chat API returned non-JSON body: {response.text[:200]}")
            raise ChatResponseError(f"Chat API returned status {response.status_code}")

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            error = data.get("error") if isinstance(data, dict) else None
            logger.error(f"Chat API error: {response.status_code} - {str(error or data)[:200]}")
            raise ChatResponseError("No choices found in the response")

        message = choices[0].get("message") or {}
        content = (message.get("content") or "").strip()
        if not content:
            raise ChatResponseError("Empty completion content")

        usage = data.get("usage") or {}
        logger.info(
            "Completion received",
            extra={
                "tokens": usage.get("total_tokens", 0),
                "response_length": len(content),
            }
        )
        return content

    async def generate_html(
        self,
        prompt: str,
        current_code: str = "",
        model: Optional[str] = None,
    ) -> str:
        """
        Generate (or revise) a single HTML page.

        Args:
            prompt: User's description or change request
            current_code: Page currently shown in the editor, if any
            model: Model override

        Returns:
            HTML with image placeholders still in place
        """
        messages = [
            {"role": "system", "content": self.html_system_prompt},
            {"role": "user", "content": self._build_html_prompt(prompt, current_code)},
        ]
        content = await self.complete(messages, model=model)
        return strip_code_fence(content)

    async def plan_project(self, prompt: str, model: Optional[str] = None) -> ProjectPlan:
        """
        Expand a short request into a project brief and file list.

        Raises:
            ChatResponseError: If the reply is not a valid plan
        """
        messages = [
            {"role": "system", "content": self.plan_system_prompt},
            {"role": "user", "content": prompt},
        ]
        content = await self.complete(messages, model=model, json_mode=True)
        data = self._parse_json_object(content)

        enhanced = data.get("enhancedPrompt") or data.get("enhanced_prompt")
        if not isinstance(enhanced, str) or not enhanced.strip():
            raise ChatResponseError("Project plan is missing enhancedPrompt")

        files = [
            path for path in (validate_project_path(str(f)) for f in data.get("files") or [])
            if path
        ]
        return ProjectPlan(enhanced_prompt=enhanced.strip(), files=files)

    async def generate_project(
        self,
        brief: str,
        current_files: Optional[Dict[str, str]] = None,
        planned_files: Optional[List[str]] = None,
        model: Optional[str] = None,
        is_initial: bool = True,
    ) -> Dict[str, str]:
        """
        Generate (or revise) a multi-file project.

        Args:
            brief: Request or enhanced brief
            current_files: Existing files to revise
            planned_files: File paths the plan asked for
            model: Model override
            is_initial: First request of the session

        Returns:
            Mapping of relative path to file content

        Raises:
            ChatResponseError: If the reply is not a path to content mapping
        """
        messages = [
            {"role": "system", "content": self.project_system_prompt},
            {
                "role": "user",
                "content": self._build_project_prompt(brief, current_files, planned_files, is_initial),
            },
        ]
        content = await self.complete(messages, model=model, json_mode=True)
        data = self._parse_json_object(content)

        # Accept both {"path": "content"} and {"files": {"path": "content"}}
        if isinstance(data.get("files"), dict):
            data = data["files"]

        files: Dict[str, str] = {}
        for raw_path, file_content in data.items():
            path = validate_project_path(str(raw_path))
            if path is None or not isinstance(file_content, str):
                continue
            files[path] = file_content

        if not files:
            raise ChatResponseError("Project reply contained no files")

        logger.info(f"Project generated with {len(files)} file(s)")
        return files

    @staticmethod
    def _parse_json_object(content: str) -> dict:
        """Parse a JSON object reply, tolerating a code fence."""
        try:
            data = json.loads(strip_code_fence(content))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON reply: {e}")
            raise ChatResponseError(f"Reply is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise ChatResponseError("Reply is not a JSON object")
        return data

    def _build_html_prompt(self, prompt: str, current_code: str = "") -> str:
        """
        Build the user message for page generation.

        The message is structured as:
        1. User's request
        2. Current page (if revising)
        """
        parts = [f"in html {prompt}, just return the html and nothing else"]

        if current_code and current_code.strip():
            parts.append("")
            parts.append("Update this existing page accordingly:")
            parts.append("---")
            parts.append(current_code.strip())
            parts.append("---")

        return "\n".join(parts)

    def _build_project_prompt(
        self,
        brief: str,
        current_files: Optional[Dict[str, str]] = None,
        planned_files: Optional[List[str]] = None,
        is_initial: bool = True,
    ) -> str:
        """Build the user message for project generation."""
        parts = [f"Project request: {brief}"]

        if planned_files:
            parts.append("")
            parts.append("Files to produce: " + ", ".join(planned_files))

        if current_files and not is_initial:
            parts.append("")
            parts.append("Current project files (revise them, keep unchanged files as they are):")
            parts.append(json.dumps(current_files, ensure_ascii=False))

        return "\n".join(parts)


# Global singleton instance
_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get or create the global ChatService instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


async def close_chat_service() -> None:
    """Close the global ChatService instance."""
    global _chat_service
    if _chat_service:
        await _chat_service.close()
        _chat_service = None
