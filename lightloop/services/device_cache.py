"""Last-known device list and its fetch time."""

import logging
import time

from lightloop.services.errors import CacheRefreshError

logger = logging.getLogger(__name__)

CACHE_MAX_AGE = 30  # seconds before an ambient mode asks for a refresh


class Device:
    """A controllable light as reported by the device listing.

    ``ip`` is set when the device also answered the LAN scan.
    """

    def __init__(self, device_id, name, sku="", online=True, ip=None, capabilities=None):
        self.device_id = device_id
        self.name = name or device_id
        self.sku = sku
        self.online = online
        self.ip = ip
        self.capabilities = capabilities or []

    @classmethod
    def from_cloud(cls, data):
        """Build a Device from one entry of the cloud /user/devices payload."""
        return cls(
            device_id=data.get("device", ""),
            name=data.get("deviceName", ""),
            sku=data.get("sku", ""),
            online=data.get("online", True),
            capabilities=data.get("capabilities", []),
        )

    def __repr__(self):
        return f"Device(id={self.device_id!r}, name={self.name!r}, sku={self.sku!r}, ip={self.ip!r})"


class DeviceCache:
    def __init__(self, clock=time.time):
        self._clock = clock
        self.devices = []
        self.updated_at = None

    def refresh(self, client):
        """Replace the cached list with a fresh listing from ``client``.

        On failure the previous list is left untouched and CacheRefreshError
        is raised.
        """
        try:
            devices = client.list_devices()
        except Exception as exc:
            raise CacheRefreshError(f"failed to cache devices: {exc}") from exc

        self.devices = list(devices)
        self.updated_at = self._clock()
        logger.debug("Device cache refreshed: %d device(s)", len(self.devices))
        return self.devices

    def age(self):
        """Seconds since the last successful refresh, or None if never refreshed."""
        if self.updated_at is None:
            return None
        return self._clock() - self.updated_at

    def is_stale(self, max_age=CACHE_MAX_AGE):
        age = self.age()
        return age is None or age > max_age

    def device_ids(self):
        return tuple(d.device_id for d in self.devices)

    def find(self, device_id):
        for d in self.devices:
            if d.device_id == device_id:
                return d
        return None

    def __len__(self):
        return len(self.devices)

    def __iter__(self):
        return iter(list(self.devices))
