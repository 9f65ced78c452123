"""HTTP control surface: a JSON action dispatcher for device management.

``POST <api path>`` with ``{"action": ..., "params": ...}`` runs a named
action and answers ``{"ok": true, "result": ...}``; failures answer
``{"ok": false, "error": ...}`` with a 4xx/5xx status.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Awaitable, Callable

from aiohttp import web

from meshcore_gateway.core.types import DeviceConnectionProtocol, RecordStoreProtocol

from .normalizer import render_profile
from .peer_directory import PeerDirectory
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Any], Awaitable[Any]]

CHANNEL_SECRET_LENGTH = 16
DEFAULT_MESSAGE_LIMIT = 100

HTTP_ERRORS = {
    "invalid_json": "Invalid JSON",
    "missing_action": "Missing action",
    "unknown_action": "Unknown action",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


class ActionError(Exception):
    """Invalid action parameters; reported to the caller as a 400."""


def _params_dict(params: Any) -> dict[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ActionError("params must be an object")
    return params


def _channel_index(params: dict[str, Any]) -> int:
    index = params.get("index", params.get("channelIdx"))
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ActionError("index must be a non-negative integer")
    return index


def channel_secret(name: str, secret_hex: str | None) -> bytes:
    """Decode a channel secret; hashtag channels derive theirs from the name."""
    if secret_hex:
        try:
            secret = bytes.fromhex(secret_hex)
        except ValueError as exc:
            raise ActionError("secret must be hex encoded") from exc
        if len(secret) != CHANNEL_SECRET_LENGTH:
            raise ActionError(
                f"secret must be {CHANNEL_SECRET_LENGTH} bytes ({CHANNEL_SECRET_LENGTH * 2} hex characters)"
            )
        return secret
    if name.startswith("#"):
        return hashlib.sha256(name.encode("utf-8")).digest()[:CHANNEL_SECRET_LENGTH]
    raise ActionError("secret is required for channels not starting with '#'")


class ControlActions:
    """Named actions exposed over HTTP."""

    def __init__(
        self,
        *,
        connection: DeviceConnectionProtocol,
        directory: PeerDirectory,
        store: RecordStoreProtocol,
        supervisor: ConnectionSupervisor | None = None,
    ) -> None:
        self._connection = connection
        self._directory = directory
        self._store = store
        self._supervisor = supervisor

    def table(self) -> dict[str, ActionHandler]:
        return {
            "reboot": self.reboot,
            "syncDeviceTime": self.sync_device_time,
            "sendFloodAdvert": self.send_flood_advert,
            "sendZeroHopAdvert": self.send_zero_hop_advert,
            "getContacts": self.get_contacts,
            "getChannels": self.get_channels,
            "setChannel": self.set_channel,
            "deleteChannel": self.delete_channel,
            "getAdverts": self.get_adverts,
            "getMessages": self.get_messages,
            "getStatus": self.get_status,
        }

    async def reboot(self, params: Any) -> dict[str, Any]:
        await self._connection.reboot()
        return {"message": "Device reboot command sent"}

    async def sync_device_time(self, params: Any) -> dict[str, Any]:
        await self._connection.sync_device_time()
        return {"message": "Device time synchronized"}

    async def send_flood_advert(self, params: Any) -> dict[str, Any]:
        await self._connection.send_flood_advert()
        return {"message": "Flood advert sent"}

    async def send_zero_hop_advert(self, params: Any) -> dict[str, Any]:
        await self._connection.send_zero_hop_advert()
        return {"message": "Zero-hop advert sent"}

    async def get_contacts(self, params: Any) -> dict[str, Any]:
        if self._directory.has_any():
            profiles = self._directory.list_all()
        else:
            profiles = await self._connection.get_contacts()
            self._directory.bulk_upsert(profiles)
        return {"contacts": [render_profile(profile) for profile in profiles]}

    async def get_channels(self, params: Any) -> dict[str, Any]:
        channels = await self._connection.get_channels()
        return {
            "channels": [
                {"channelIdx": ch.channel_idx, "name": ch.name, "secret": ch.secret.hex()}
                for ch in channels
                if ch.name or any(ch.secret)
            ]
        }

    async def set_channel(self, params: Any) -> dict[str, Any]:
        values = _params_dict(params)
        index = _channel_index(values)
        name = values.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ActionError("name must be a non-empty string")
        name = name.strip()
        secret = channel_secret(name, values.get("secret"))
        await self._connection.set_channel(index, name, secret)
        return {"message": f"Channel {index} set", "channelIdx": index, "name": name}

    async def delete_channel(self, params: Any) -> dict[str, Any]:
        index = _channel_index(_params_dict(params))
        await self._connection.delete_channel(index)
        return {"message": f"Channel {index} deleted", "channelIdx": index}

    async def get_adverts(self, params: Any) -> dict[str, Any]:
        return {"adverts": self._store.get_adverts()}

    async def get_messages(self, params: Any) -> dict[str, Any]:
        limit = params.get("limit") if isinstance(params, dict) else None
        if isinstance(limit, bool) or not isinstance(limit, int):
            limit = DEFAULT_MESSAGE_LIMIT
        return {"messages": self._store.get_messages(limit)}

    async def get_status(self, params: Any) -> dict[str, Any]:
        supervisor = self._supervisor
        self_info = supervisor.self_info if supervisor is not None else None
        return {
            "state": str(supervisor.state) if supervisor is not None else None,
            "name": self_info.name if self_info is not None else None,
            "publicKey": self_info.public_key.hex() if self_info is not None else None,
            "peers": len(self._directory),
        }


class ControlServer:
    def __init__(
        self,
        actions: dict[str, ActionHandler],
        *,
        host: str = "localhost",
        port: int = 8080,
        api_path: str = "/api",
    ) -> None:
        self.actions = actions
        self.host = host
        self.port = port
        self.api_path = api_path
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle_request)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("HTTP server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def handle_request(self, request: web.Request) -> web.StreamResponse:
        if request.method == "GET" and request.path == "/health":
            return web.Response(text="ok")
        if request.method == "POST":
            if request.path != self.api_path:
                return _error(404, HTTP_ERRORS[404])
            return await self.handle_action(request)
        if request.method == "GET":
            return web.Response(status=404, text=HTTP_ERRORS[404])
        return web.Response(status=405, text=HTTP_ERRORS[405])

    async def handle_action(self, request: web.Request) -> web.Response:
        body = await request.text()
        try:
            payload = json.loads(body or "{}")
        except ValueError:
            return _error(400, HTTP_ERRORS["invalid_json"])
        if not isinstance(payload, dict):
            payload = {}

        action = payload.get("action")
        if not action:
            return _error(400, HTTP_ERRORS["missing_action"])
        handler = self.actions.get(action) if isinstance(action, str) else None
        if handler is None:
            return _error(400, HTTP_ERRORS["unknown_action"])

        params = payload.get("params")
        if isinstance(params, str):
            # params may arrive JSON-encoded
            try:
                params = json.loads(params)
            except ValueError:
                pass

        logger.info("action %s params=%s", action, params)
        try:
            result = await handler(params)
        except ActionError as exc:
            return _error(400, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("action %s failed", action)
            return _error(500, str(exc) or HTTP_ERRORS[500])
        return web.json_response({"ok": True, "result": result})


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"ok": False, "error": message}, status=status)
