"""
Session bootstrap against the KuCoin Futures bullet endpoint.

One POST returns a short-lived token plus the websocket instance servers.
Transient failures are retried a fixed number of times with a fixed delay.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp
import orjson

from ..errors import BootstrapError
from ..types import ServerInfo

logger = logging.getLogger(__name__)

BULLET_URL = "https://api-futures.kucoin.com/api/v1/bullet-public"
SUCCESS_CODE = "200000"

MAX_ATTEMPTS = 5
RETRY_DELAY_SEC = 1.0


def parse_server_info(body: dict) -> ServerInfo:
    """
    Extract the first instance server from a bullet response.

    Expected format: {code, data: {token, instanceServers: [{endpoint, pingInterval, pingTimeout}]}}
    """
    if not isinstance(body, dict):
        raise BootstrapError("bullet response is not an object")

    code = str(body.get("code"))
    if code != SUCCESS_CODE:
        raise BootstrapError(f"bullet endpoint returned code {code}: {body.get('msg', '')}")

    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise BootstrapError(f"bullet response data is not an object: {data!r}")

    servers = data.get("instanceServers") or []
    token = data.get("token")
    if not token or not servers:
        raise BootstrapError("bullet response has no token or instance servers")
    if not isinstance(servers, list) or not isinstance(servers[0], dict):
        raise BootstrapError(f"malformed instance servers: {servers!r}")

    server = servers[0]
    try:
        info = ServerInfo(
            token=token,
            endpoint=server["endpoint"],
            keepalive_interval_ms=int(server["pingInterval"]),
            keepalive_timeout_ms=int(server.get("pingTimeout", 0)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise BootstrapError(f"malformed instance server: {server!r}") from exc

    if info.keepalive_interval_ms <= 0:
        raise BootstrapError(f"ping interval must be > 0, got {info.keepalive_interval_ms}")
    return info


async def fetch_server_info(session: aiohttp.ClientSession, url: str = BULLET_URL) -> ServerInfo:
    """Single bootstrap attempt."""
    try:
        async with session.post(url) as resp:
            resp.raise_for_status()
            body = orjson.loads(await resp.read())
    except (aiohttp.ClientError, asyncio.TimeoutError, orjson.JSONDecodeError) as exc:
        raise BootstrapError(f"bullet request failed: {exc}") from exc
    return parse_server_info(body)


async def bootstrap(
    session: aiohttp.ClientSession,
    url: str = BULLET_URL,
    attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY_SEC,
) -> ServerInfo:
    """
    Fetch server info, retrying up to `attempts` times `delay` seconds apart.

    Raises BootstrapError once every attempt has failed.
    """
    last_error: BootstrapError | None = None

    for attempt in range(1, attempts + 1):
        try:
            info = await fetch_server_info(session, url)
        except BootstrapError as exc:
            last_error = exc
            if attempt < attempts:
                logger.warning(
                    "Failed to get server endpoint, retrying (%d/%d): %s", attempt, attempts, exc
                )
                await asyncio.sleep(delay)
            continue

        logger.info("Obtained server info: endpoint=%s", info.endpoint)
        logger.debug("Token: %s", info.token)
        return info

    raise BootstrapError(
        f"Failed to get server info after {attempts} attempts: {last_error}"
    ) from last_error


def build_ws_url(info: ServerInfo, connect_id: str | None = None) -> str:
    """Websocket URL with the bootstrap token (and optional connectId) attached."""
    url = f"{info.endpoint}?token={info.token}"
    if connect_id:
        url += f"&connectId={connect_id}"
    return url
