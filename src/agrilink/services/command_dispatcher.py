import asyncio
import json
import logging
from typing import Any, Callable, Optional

import aiohttp

from agrilink.event_hub import EventHub
from agrilink.models.config_data import commandConfigData
from agrilink.models.events import ControlResult, Topic
from agrilink.models.plant import ActuatorKind, ActuatorState, DeviceRoles, PlantSelector

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Not connected to backend. Please check your connection."


class CommandDispatcher:
    """
    Sends actuator commands to the backend over HTTP.

    Commands travel outside the streaming channel (POST /send-command) but are
    only attempted while that channel is up. A successful request flips the
    matching actuator flag right away; the gateway's controlResponse later
    corrects it if needed.
    """

    def __init__(
        self,
        hub: EventHub,
        base_url: str,
        is_connected: Callable[[], bool],
        selector: PlantSelector,
        roles: DeviceRoles,
        actuators: ActuatorState,
        config: Optional[commandConfigData] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.hub = hub
        self.base_url = base_url.rstrip("/")
        self.config = config or commandConfigData()
        self._is_connected = is_connected
        self._selector = selector
        self._roles = roles
        self._actuators = actuators
        self._session = session
        self._owns_session = session is None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/send-command"

    async def send_command(self, action: str) -> bool:
        return await self.dispatch(action) is None

    async def dispatch(self, action: str) -> Optional[str]:
        """Send one command. Returns None on success, otherwise the reported error message."""
        action = ActuatorKind(action).value

        if not self._is_connected():
            logger.error("❌ Not connected to backend")
            return self._report_error(action, NOT_CONNECTED_MESSAGE)

        # Resolved now, not when the caller decided to send
        plant = self._selector.current
        device_id = self._roles.device_for(plant)
        body = {
            "deviceId": device_id,
            "command": action,
            "value": self.config.value,
            "duration": self.config.duration_ms,
            "plantType": plant.value,
        }
        logger.info(f"🎮 Sending control command to {device_id}: {action} for plant type: {plant.value}")

        try:
            session = self._get_session()
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
            async with session.post(self.endpoint, json=body, timeout=timeout) as resp:
                result = await self._read_json(resp)
                if resp.status < 400 and result.get("success", True) is not False:
                    logger.info(f"✅ Command sent successfully: {result}")
                    self._actuators.toggle(action)
                    return None

                logger.error(f"❌ Command failed ({resp.status}): {result}")
                message = result.get("message") or result.get("error")
                if not message:
                    message = f"Failed to send command: {json.dumps(result) if result else resp.status}"
                return self._report_error(action, str(message))

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ Command error: {e!r}")
            return self._report_error(action, f"Failed to send command: {str(e) or type(e).__name__}")

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None if self._owns_session else self._session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    @staticmethod
    async def _read_json(resp: aiohttp.ClientResponse) -> dict:
        try:
            data: Any = await resp.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError, UnicodeDecodeError):
            return {}
        if data is None:
            return {}
        return data if isinstance(data, dict) else {"result": data}

    def _report_error(self, action: str, message: str) -> str:
        self.hub.publish(Topic.CONTROL_ERROR, ControlResult(action=action, success=False, message=message))
        return message
