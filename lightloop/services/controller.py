"""The scheduler's single context object.

The Controller owns the device cache, the mode registry, the active mode,
the last-assigned-color map and the input listener used while an
indefinite mode is running. Modes receive it on every call and go through
it for every device mutation.
"""

import logging
import random

from lightloop.drivers.console import Console, InputListener
from lightloop.services.assignment import assign_colors
from lightloop.services.colors import BASE_COLORS
from lightloop.services.device_cache import CACHE_MAX_AGE, DeviceCache
from lightloop.services.errors import (
    CacheRefreshError,
    LightLoopError,
    ModeRunError,
    UnknownModeError,
)
from lightloop.services.modes import COMMAND_ID, MIN_SLEEP, default_modes

logger = logging.getLogger(__name__)

INPUT_POLL_WINDOW = 0.05  # seconds spent waiting for a keypress each tick
MIN_INTERRUPT_LENGTH = 2  # non-blank characters needed to break an indefinite mode


class Controller:
    def __init__(self, client, modes=None, console=None, cache=None, rng=None,
                 listener_factory=None, debug=False):
        self.client = client
        self.console = console or Console()
        self.cache = cache or DeviceCache()
        self.rng = rng or random.Random()
        self.debug = debug
        self.running = True
        self.mode = None
        self.last_colors = {}  # device_id -> Color last sent
        self.listener = None
        self._listener_factory = listener_factory or (lambda: InputListener(self.console.stream))

        # The registry is fixed for the controller's lifetime.
        self.modes = {}
        for mode in (modes if modes is not None else default_modes()):
            self.modes[mode.mode_id] = mode

    @property
    def devices(self):
        return self.cache.devices

    # ------------------------------------------------------------------
    # Mode switching and ticks
    # ------------------------------------------------------------------

    def switch_mode(self, mode_id):
        """Make ``mode_id`` the active mode.

        Raises:
            UnknownModeError: ``mode_id`` is not registered. Nothing changes.
            LightLoopError: the new mode's ``on_switch`` failed. The new mode
                is active regardless; the caller decides what to do.
        """
        mode = self.modes.get(mode_id)
        if mode is None:
            raise UnknownModeError(mode_id)

        logger.debug("Changing to mode %s", mode_id)
        self._stop_listener()
        if self.mode is not None:
            self.mode.on_exit(self)
        self.mode = mode
        mode.on_switch(self)

    def tick(self):
        """Run one tick of the active mode.

        Returns:
            Seconds to sleep before the next tick.

        Raises:
            ModeRunError: the mode failed this tick. The loop may keep going.
        """
        if self.mode is None:
            raise LightLoopError("no active mode")

        if self.mode.indefinite:
            if self.listener is None:
                self.listener = self._listener_factory()
                self.listener.start()
            line = self.listener.poll(INPUT_POLL_WINDOW)
            if line is not None:
                logger.debug("Got user input %r", line)
                if len(line.strip()) >= MIN_INTERRUPT_LENGTH:
                    self.switch_mode(COMMAND_ID)
                    return MIN_SLEEP

        mode = self.mode
        if self.debug:
            logger.debug("Tick: running=%s mode=%r devices=%d",
                         self.running, mode, len(self.cache))
        try:
            sleep_for = mode.run(self)
        except UnknownModeError as e:
            # The mode already told the operator.
            logger.debug("Ignoring %s", e)
            return MIN_SLEEP
        except Exception as e:
            raise ModeRunError(mode.mode_id, e) from e

        logger.debug("Mode %s asked to sleep %.3fs", mode.mode_id, sleep_for)
        return sleep_for

    def stop(self):
        """Leave the loop: clear ``running``, stop the listener, exit the active mode."""
        if not self.running:
            return
        self.running = False
        self._stop_listener()
        if self.mode is not None:
            self.mode.on_exit(self)

    def _stop_listener(self):
        if self.listener is not None:
            self.listener.stop()
            self.listener = None

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def refresh_device_cache(self):
        """Fetch the device list. Raises CacheRefreshError, keeping the old list."""
        return self.cache.refresh(self.client)

    def refresh_if_stale(self, max_age=CACHE_MAX_AGE):
        """Refresh when the cache is older than ``max_age``. Returns True if it did.

        Failures are logged and swallowed: the stale list stays usable and
        the next tick will try again.
        """
        if not self.cache.is_stale(max_age):
            return False
        try:
            self.refresh_device_cache()
        except CacheRefreshError as e:
            logger.warning("%s", e)
            return False
        return True

    def last_color(self, device):
        return self.last_colors.get(device.device_id)

    def assign_random_colors(self, devices, palette=BASE_COLORS):
        return assign_colors(devices, palette, self.last_colors, rng=self.rng)

    # Passthroughs. Synchronous calls raise DeviceCommandError. The async
    # variants return at once and never confirm anything; the color they
    # record is what was attempted, not what the light shows.

    def set_status(self, device, on):
        logger.debug("[set_status] %s -> %s", device.name, on)
        self.client.set_status(device, on)

    def set_status_async(self, device, on):
        self.client.set_status_async(device, on)

    def set_color(self, device, color):
        logger.debug("[set_color] %s -> %s %s", device.name, color.label(), color.rgb)
        self.client.set_color(device, color.r, color.g, color.b)
        self.last_colors[device.device_id] = color

    def set_color_step(self, device, color):
        """Send an intermediate transition color. Nothing is recorded."""
        self.client.set_color(device, color.r, color.g, color.b)

    def set_color_async(self, device, color):
        logger.debug("[set_color_async] %s -> %s %s", device.name, color.label(), color.rgb)
        self.last_colors[device.device_id] = color
        self.client.set_color_async(device, color.r, color.g, color.b)

    def set_brightness(self, device, level):
        logger.debug("[set_brightness] %s -> %s", device.name, level)
        self.client.set_brightness(device, level)

    def set_brightness_async(self, device, level):
        self.client.set_brightness_async(device, level)
