from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


def _success_code(status_code: int) -> str:
    mapping = {
        200: "ok",
        201: "created",
        202: "accepted",
    }
    return mapping.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def build_success_envelope(data: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if "code" in payload and "message" in payload:
        return "data" in payload or "details" in payload
    return False


class ResponseEnvelopeMiddleware:
    """Wrap successful JSON responses in the {code, message, data, details} envelope."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_message: Message | None = None
        body_parts: list[bytes] = []
        passthrough = False

        async def send_enveloped(message: Message) -> None:
            nonlocal start_message, passthrough
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(raw=list(message.get("headers", [])))
                is_json = headers.get("content-type", "").startswith("application/json")
                if not (200 <= status_code < 300) or not is_json:
                    passthrough = True
                    await send(message)
                    return
                start_message = message
                return
            if passthrough or start_message is None:
                await send(message)
                return

            body_parts.append(message.get("body", b""))
            if message.get("more_body", False):
                return

            raw_body = b"".join(body_parts)
            status_code = start_message["status"]
            try:
                payload = json.loads(raw_body) if raw_body else None
            except ValueError:
                payload = None
                new_body = raw_body
            else:
                wrapped = payload if _is_enveloped(payload) else build_success_envelope(payload, status_code)
                new_body = json.dumps(wrapped).encode("utf-8")

            headers = MutableHeaders(raw=list(start_message.get("headers", [])))
            headers["content-length"] = str(len(new_body))
            start_message["headers"] = headers.raw
            await send(start_message)
            await send({"type": "http.response.body", "body": new_body, "more_body": False})

        await self.app(scope, receive, send_enveloped)


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
