"""Line-delimited JSON-RPC tool server over stdio.

Exposes the pipeline stages as tools so chat clients and editors can search
the knowledge base, fetch file contents, or run a whole query. Each request
is one JSON object per line on stdin; each response is one line on stdout.
Logging must go to stderr so it never corrupts the protocol stream.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from brain import __version__
from brain.exceptions import BrainError, ContentLoadError, ToolServerError
from brain.types import KeywordSet, Mode

if TYPE_CHECKING:
    from brain.pipeline import Brain, PipelineController

__all__ = ["ToolServer"]

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

TOOLS: tuple[dict[str, Any], ...] = (
    {
        "name": "search_files",
        "description": "Search for relevant files based on keywords",
        "input_schema": {
            "type": "object",
            "properties": {
                "keywords": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Keywords to search for in files",
                }
            },
            "required": ["keywords"],
        },
    },
    {
        "name": "get_contents",
        "description": "Get contents of specified files",
        "input_schema": {
            "type": "object",
            "properties": {
                "file_paths": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Knowledge-base file paths, absolute or relative to its root",
                }
            },
            "required": ["file_paths"],
        },
    },
    {
        "name": "ask",
        "description": "Answer a question from the knowledge base",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The question to answer"},
                "mode": {
                    "type": "string",
                    "enum": [m.value for m in Mode],
                    "description": "How far to run the pipeline",
                },
            },
            "required": ["query"],
        },
    },
)


def _string_list(arguments: dict[str, Any], key: str) -> list[str]:
    value = arguments.get(key)
    if not isinstance(value, list):
        raise ToolServerError(f"'{key}' must be an array of strings", INVALID_PARAMS)
    return [item for item in value if isinstance(item, str)]


def _text_content(payload: Any) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2)}]}


class ToolServer:
    """Dispatches JSON-RPC requests to the pipeline capabilities.

    Methods: ``initialize``, ``list_tools`` (alias ``tools/list``) and
    ``call_tool`` (alias ``tools/call``).
    """

    def __init__(self, brain: Brain, controller: PipelineController, server_name: str) -> None:
        self._brain = brain
        self._controller = controller
        self._server_name = server_name

    def serve(self, stdin: IO[str], stdout: IO[str]) -> None:
        """Answer requests until ``stdin`` closes."""
        logger.info("Tool server %s listening on stdio", self._server_name)
        for line in stdin:
            response = self.handle_line(line)
            if response is None:
                continue
            stdout.write(response + "\n")
            stdout.flush()
        logger.info("Tool server %s stopped", self._server_name)

    def handle_line(self, line: str) -> str | None:
        """Decode one request line and encode its response."""
        if not line.strip():
            return None
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            return json.dumps(self._error(None, PARSE_ERROR, f"Parse error: {e}"))
        return json.dumps(self.handle_request(request))

    def handle_request(self, request: Any) -> dict[str, Any]:
        if not isinstance(request, dict) or not isinstance(request.get("method"), str):
            request_id = request.get("id") if isinstance(request, dict) else None
            return self._error(request_id, INVALID_REQUEST, "Invalid request")

        request_id = request.get("id")
        params = request.get("params") or {}
        try:
            if not isinstance(params, dict):
                raise ToolServerError("Invalid parameters", INVALID_PARAMS)
            result = self._dispatch(request["method"], params)
        except ToolServerError as e:
            return self._error(request_id, e.code, str(e))
        except BrainError as e:
            logger.error("Tool call failed: %s", e)
            return self._error(request_id, INTERNAL_ERROR, f"Internal error: {e}")
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    def _dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        if method == "initialize":
            return {"serverInfo": {"name": self._server_name, "version": __version__}}
        if method in ("list_tools", "tools/list"):
            return {"tools": list(TOOLS)}
        if method in ("call_tool", "tools/call"):
            return self._call_tool(params)
        raise ToolServerError("Method not found", METHOD_NOT_FOUND)

    def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(arguments, dict):
            raise ToolServerError("Invalid parameters", INVALID_PARAMS)

        logger.info("Tool call: %s", name)
        if name == "search_files":
            keywords = KeywordSet.from_terms(_string_list(arguments, "keywords"))
            ranked = self._brain.search_files(keywords)
            return _text_content(
                [
                    {"path": m.path, "score": m.score, "matched_terms": list(m.matched_terms)}
                    for m in ranked
                ]
            )
        if name == "get_contents":
            return _text_content(self._get_contents(_string_list(arguments, "file_paths")))
        if name == "ask":
            return self._ask(arguments)
        raise ToolServerError(f"Unknown tool: {name}", INVALID_PARAMS)

    def _get_contents(self, file_paths: list[str]) -> dict[str, dict[str, str]]:
        """Read files under the knowledge-base root; report every other path in ``errors``.

        Relative paths are taken relative to the root. Symlinks are resolved
        before the root check.
        """
        root = self._brain.config.root.resolve()
        contents: dict[str, str] = {}
        errors: dict[str, str] = {}
        for raw in file_paths:
            path = Path(raw).expanduser()
            resolved = (path if path.is_absolute() else root / path).resolve()
            if not resolved.is_relative_to(root):
                logger.warning("Refusing to read %s: outside %s", raw, root)
                errors[raw] = "path is outside the knowledge base"
                continue
            try:
                contents[raw] = self._brain.loader.read_one(resolved).text
            except ContentLoadError as e:
                logger.warning("Cannot read %s: %s", raw, e)
                errors[raw] = str(e)
        return {"contents": contents, "errors": errors}

    def _ask(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = arguments.get("query")
        if not isinstance(query, str):
            raise ToolServerError("'query' must be a string", INVALID_PARAMS)
        try:
            mode = Mode(arguments.get("mode", Mode.GENERATE_RESPONSE.value))
        except ValueError as e:
            raise ToolServerError(f"Unknown mode: {arguments.get('mode')}", INVALID_PARAMS) from e
        return _text_content(self._controller.run(query, mode).to_dict())

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": {"code": code, "message": message},
        }
