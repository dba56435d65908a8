"""Govee LAN UDP transport for the fire-and-forget command path.

Devices that answer the multicast scan get their LAN address attached when
the device cache is refreshed; color and brightness updates for those
devices then go out as single UDP datagrams instead of cloud requests.

Protocol reference:
  - Discovery: multicast to 239.255.255.250:4001, listen on 4002
  - Control:   unicast UDP to device IP on port 4003
"""

import json
import logging
import socket
import struct
import time

logger = logging.getLogger(__name__)

MULTICAST_ADDR = "239.255.255.250"
SCAN_PORT = 4001
LISTEN_PORT = 4002
CONTROL_PORT = 4003
SCAN_TIMEOUT = 2  # seconds to wait for discovery responses


class GoveeLanService:
    """Sends commands to Govee lights on the local network.

    No device state is kept here: addresses live on the cached devices.
    Every control method is a single UDP send with no acknowledgement.
    """

    def __init__(self, scan_timeout=SCAN_TIMEOUT):
        self.scan_timeout = scan_timeout

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self):
        """Multicast scan for devices on the LAN.

        Returns a dict of device_id -> ip. An unreachable network yields an
        empty dict rather than an error; LAN control is an optimisation.
        """
        try:
            with self._listen_socket() as sock:
                self._send_scan()
                found = dict(self._collect(sock))
        except OSError as exc:
            logger.warning("LAN discovery failed: %s", exc)
            return {}
        logger.info("LAN scan complete: %d device(s) reachable locally", len(found))
        return found

    @staticmethod
    def _listen_socket():
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", LISTEN_PORT))
            membership = struct.pack("4sl", socket.inet_aton(MULTICAST_ADDR), socket.INADDR_ANY)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        except OSError:
            sock.close()
            raise
        return sock

    @staticmethod
    def _send_scan():
        scan = {"msg": {"cmd": "scan", "data": {"account_topic": "reserve"}}}
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, struct.pack("b", 1))
            sock.sendto(json.dumps(scan).encode("utf-8"), (MULTICAST_ADDR, SCAN_PORT))

    def _collect(self, sock):
        """Yield (device_id, ip) for every scan answer until the timeout runs out."""
        deadline = time.monotonic() + self.scan_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            sock.settimeout(remaining)
            try:
                data, _addr = sock.recvfrom(4096)
            except socket.timeout:
                return
            parsed = self.parse_scan_response(data)
            if parsed:
                logger.debug("LAN device %s at %s", *parsed)
                yield parsed

    @staticmethod
    def parse_scan_response(data):
        """Parse a scan response into (device_id, ip), or None."""
        try:
            payload = json.loads(data.decode("utf-8"))
            msg = payload.get("msg", {})
            if msg.get("cmd") != "scan":
                return None
            d = msg.get("data", {})
            ip = d.get("ip")
            device_id = d.get("device")
            if ip and device_id:
                return device_id, ip
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError) as exc:
            logger.warning("Failed to parse scan response: %s", exc)
        return None

    # ------------------------------------------------------------------
    # Control (fire-and-forget UDP)
    # ------------------------------------------------------------------

    @staticmethod
    def _send(ip, cmd, data):
        payload = json.dumps({"msg": {"cmd": cmd, "data": data}}).encode("utf-8")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.sendto(payload, (ip, CONTROL_PORT))
        except OSError as exc:
            logger.debug("UDP %s to %s failed: %s", cmd, ip, exc)
        finally:
            sock.close()

    def turn(self, ip, on):
        self._send(ip, "turn", {"value": 1 if on else 0})

    def set_brightness(self, ip, value):
        """Set brightness, clamped to 0-100."""
        self._send(ip, "brightness", {"value": max(0, min(100, int(value)))})

    def set_color(self, ip, r, g, b):
        """Set an RGB color. Channels are clamped to 0-255."""
        r = max(0, min(255, int(r)))
        g = max(0, min(255, int(g)))
        b = max(0, min(255, int(b)))
        self._send(ip, "colorwc", {
            "color": {"r": r, "g": g, "b": b},
            "colorTemInKelvin": 0,
        })
