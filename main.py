# ================================
# main.py — HTTP front for the write_note tool
# run with: uvicorn main:create_app --factory
# ================================

import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from bootstrap import init_client
from errors import (
    ContentValidationError,
    EncodingError,
    FlomoError,
    ProtocolArgumentError,
    TransportError,
)
from tool_adapter import WriteNoteTool

_log = logging.getLogger("flomo.http")

ERROR_STATUS = {
    ProtocolArgumentError: 400,
    ContentValidationError: 422,
    TransportError: 502,
    EncodingError: 502,
}


def _status_for(exc: FlomoError) -> int:
    for cls, status in ERROR_STATUS.items():
        if isinstance(exc, cls):
            return status
    return 500


# ======================================================
# APP FACTORY
# ======================================================
def create_app(tool: Optional[WriteNoteTool] = None) -> FastAPI:
    if tool is None:
        # ConfigError propagates: the server must not start without an endpoint
        tool = WriteNoteTool(init_client("http"))

    app = FastAPI(title="Flomo Note Service")
    tools = {tool.name: tool}

    @app.exception_handler(FlomoError)
    async def _flomo_error_handler(request: Request, exc: FlomoError):
        status = _status_for(exc)
        _log.error("%s %s failed (%d): %s", request.method, request.url.path, status, exc)
        return JSONResponse(status_code=status, content={"message": str(exc), "isError": True})

    @app.get("/")
    def health():
        return {"status": "flomo note service is running"}

    @app.get("/tools")
    def list_tools():
        return {"tools": [t.descriptor() for t in tools.values()]}

    @app.post("/tools/{name}")
    async def call_tool(name: str, arguments: Any = Body(default=None)) -> Dict[str, Any]:
        target = tools.get(name)
        if target is None:
            raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
        text = await target.acall(arguments)
        return {"content": [{"type": "text", "text": text}], "isError": False}

    return app
