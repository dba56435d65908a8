import json
import logging
import threading
import uuid

import requests

from lightloop.services.colors import Color
from lightloop.services.device_cache import Device
from lightloop.services.errors import DeviceCommandError, LoginError, SessionError
from lightloop.services.govee_lan import GoveeLanService

logger = logging.getLogger(__name__)

GOVEE_BASE = "https://openapi.api.govee.com"
REQUEST_TIMEOUT = 2  # seconds


class Session:
    """Opaque credentials for the cloud API, serializable for reuse."""

    def __init__(self, api_key):
        self.api_key = api_key

    def to_json(self):
        return json.dumps({"api_key": self.api_key})

    @classmethod
    def from_json(cls, raw):
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise SessionError(f"couldn't parse cached session info: {exc}") from exc
        if not isinstance(data, dict) or not data.get("api_key"):
            raise SessionError("cached session info has no api_key")
        return cls(data["api_key"])


class GoveeService:
    """Device client for the Govee cloud API with a LAN fast path.

    Synchronous calls raise DeviceCommandError. The ``*_async`` variants
    return immediately and never report an outcome. They say nothing about
    the physical state of the light.
    """

    def __init__(self, session, lan=None, timeout=REQUEST_TIMEOUT, http=None):
        self.session = session
        self.lan = lan if lan is not None else GoveeLanService()
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def headers(self):
        return {
            "Content-Type": "application/json",
            "Govee-API-Key": self.session.api_key,
        }

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_devices(self):
        """GET /router/api/v1/user/devices, annotated with LAN addresses."""
        resp = self.http.get(
            f"{GOVEE_BASE}/router/api/v1/user/devices",
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        devices = [Device.from_cloud(d) for d in resp.json().get("data", [])]

        try:
            addresses = self.lan.discover()
        except Exception as e:
            logger.warning("LAN discovery failed, using cloud only: %s", e)
            addresses = {}
        for d in devices:
            d.ip = addresses.get(d.device_id)
        return devices

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def _control(self, device, capability):
        """POST a capability to /router/api/v1/device/control."""
        resp = self.http.post(
            f"{GOVEE_BASE}/router/api/v1/device/control",
            headers=self.headers,
            json={
                "requestId": str(uuid.uuid4()),
                "payload": {
                    "sku": device.sku,
                    "device": device.device_id,
                    "capability": capability,
                },
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def _command(self, device, action, capability):
        try:
            return self._control(device, capability)
        except requests.RequestException as e:
            raise DeviceCommandError(device, action, str(e)) from e

    def set_status(self, device, on):
        if device.ip:
            self.lan.turn(device.ip, on)
            return
        self._command(device, "set status", {
            "type": "devices.capabilities.on_off",
            "instance": "powerSwitch",
            "value": 1 if on else 0,
        })

    def set_color(self, device, r, g, b):
        if device.ip:
            self.lan.set_color(device.ip, r, g, b)
            return
        self._command(device, "set color", {
            "type": "devices.capabilities.color_setting",
            "instance": "colorRgb",
            "value": Color(r, g, b).to_int(),
        })

    def set_brightness(self, device, level):
        level = max(0, min(100, int(level)))
        if device.ip:
            self.lan.set_brightness(device.ip, level)
            return
        self._command(device, "set brightness", {
            "type": "devices.capabilities.range",
            "instance": "brightness",
            "value": level,
        })

    # Fire-and-forget variants. UDP sends are already non-blocking; cloud
    # requests are pushed onto a daemon thread whose result nobody waits for.

    def _fire(self, fn, device, *args):
        if device.ip:
            fn(device, *args)
            return
        threading.Thread(
            target=self._fire_and_log, args=(fn, device) + args, daemon=True
        ).start()

    @staticmethod
    def _fire_and_log(fn, device, *args):
        try:
            fn(device, *args)
        except DeviceCommandError as e:
            logger.debug("Async command dropped: %s", e)

    def set_status_async(self, device, on):
        self._fire(self.set_status, device, on)

    def set_color_async(self, device, r, g, b):
        self._fire(self.set_color, device, r, g, b)

    def set_brightness_async(self, device, level):
        self._fire(self.set_brightness, device, level)


def login(api_key, prompt, lan=None):
    """Interactive session establishment.

    Prompts for the API key when none was supplied, verifies it by listing
    devices, and prints the serialized session so it can be cached in the
    environment for faster startup next time.

    Args:
        api_key: Key from the command line or environment, may be empty.
        prompt: Callable(component, text) -> str used to ask the operator.
        lan: Optional LAN service handed to the resulting client.

    Returns:
        A GoveeService bound to the new session.
    """
    if not api_key:
        api_key = (prompt("login", "enter Govee API key") or "").strip()
    if not api_key:
        raise LoginError("no API key supplied")

    client = GoveeService(Session(api_key), lan=lan)
    try:
        resp = client.http.get(
            f"{GOVEE_BASE}/router/api/v1/user/devices",
            headers=client.headers,
            timeout=client.timeout,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        raise LoginError(f"failed to verify API key: {e}") from e

    print(f"[login] store session info in env variable 'LIGHTLOOP_SESSION' for faster login: "
          f"{client.session.to_json()}")
    return client
