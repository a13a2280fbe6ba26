# tool_adapter.py
import logging
from functools import partial
from typing import Any, Dict, Optional

import anyio
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError

from errors import FlomoError, ProtocolArgumentError
from flomo_client import FlomoClient, memo_url

TOOL_NAME = "write_note"
TOOL_DESCRIPTION = "Write note to flomo"
CONTENT_DESCRIPTION = "Text content of the note with markdown format"

INPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "content": {"type": "string", "description": CONTENT_DESCRIPTION},
    },
    "required": ["content"],
}


class WriteNoteArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: StrictStr


def parse_arguments(arguments: Any) -> WriteNoteArguments:
    """Turn the raw tool-call mapping into typed arguments."""
    if not isinstance(arguments, dict):
        raise ProtocolArgumentError("arguments must be an object with a 'content' string")
    try:
        return WriteNoteArguments.model_validate(arguments)
    except ValidationError as e:
        if "content" not in arguments:
            raise ProtocolArgumentError("missing required argument 'content'") from e
        raise ProtocolArgumentError(
            f"argument 'content' must be a string, got {type(arguments['content']).__name__}"
        ) from e


class WriteNoteTool:
    """
    The single ``write_note`` capability, shared by every tool-call front.

    Keeps no per-call state; failures are raised as FlomoError subclasses and
    turned into error results by the hosting server.
    """

    name = TOOL_NAME
    description = TOOL_DESCRIPTION
    input_schema = INPUT_SCHEMA

    def __init__(self, client: FlomoClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger("flomo.tool")

    def descriptor(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    def format_result(self, resp) -> str:
        url = memo_url(self.client.config.view_url, resp.memo.slug)
        return (
            "Successfully wrote note to Flomo.\n"
            f"Memo URL: {url}\n"
            f"Created at: {resp.memo.created_at}"
        )

    def call(self, arguments: Any, session=None) -> str:
        return self._write(parse_arguments(arguments), session)

    def _write(self, args: WriteNoteArguments, session=None) -> str:
        self.logger.info("Received %s request with content length: %d", self.name, len(args.content))
        try:
            resp = self.client.write_note(args.content, session=session)
        except FlomoError as e:
            self.logger.error("Error writing note: %s", e)
            raise
        text = self.format_result(resp)
        self.logger.info("Successfully wrote note. Memo slug: %s", resp.memo.slug)
        return text

    async def acall(self, arguments: Any) -> str:
        # closing the session on cancellation shuts down the socket the
        # worker thread is blocked on
        args = parse_arguments(arguments)
        with self.client.session_factory() as session:
            return await anyio.to_thread.run_sync(
                partial(self._write, args, session=session),
                abandon_on_cancel=True,
            )
