"""Selectable behaviors for the control loop.

Every mode has an id, an ``indefinite`` flag and the lifecycle
``on_switch`` -> ``run`` (once per tick) -> ``on_exit``. ``run`` returns the
number of seconds the scheduler should sleep before the next tick.

Ambient modes never trust device-derived state built at switch time: the
cache may still be empty then. They compare the cached device ids on every
tick and rebuild whenever the set changes.
"""

import logging
import time

from lightloop.services.assignment import rotate_colors
from lightloop.services.colors import BASE_COLORS, MAX_LUM, Color
from lightloop.services.errors import (
    CacheRefreshError,
    DeviceCommandError,
    InputParseError,
    UnknownModeError,
)
from lightloop.services.transitions import TRANSITION_DELAY, TRANSITION_STEPS, TransitionEngine

logger = logging.getLogger(__name__)

COMMAND_ID = "command"
RAINBOW_ID = "rainbow"
ROLL_ID = "roll"
PRETTY_ID = "pretty"
EXPERIMENT_ID = "experiment"

MIN_SLEEP = 0.001
DEVICE_DELAY = 0.05  # pause between devices inside one tick
PROMPT_SLEEP = 0.05
TRANSITION_TIMEOUT = 30  # seconds to wait on a round of smooth transitions


class Mode:
    """Base class. Subclasses set ``mode_id`` and implement ``run``."""

    mode_id = None
    indefinite = False

    def on_switch(self, controller):
        pass

    def run(self, controller):
        raise NotImplementedError

    def on_exit(self, controller):
        pass

    def __repr__(self):
        return f"<{type(self).__name__} {self.mode_id}>"


# ----------------------------------------------------------------------
# Input parsing
# ----------------------------------------------------------------------

def parse_color(text):
    """Parse ``"r g b [brightness]"`` into a Color.

    Raises:
        InputParseError: wrong token count, non-numeric or out-of-range values.
    """
    tokens = text.split()
    if len(tokens) not in (3, 4):
        raise InputParseError(
            "must specify colors as space-separated numbers, e.g. 255 255 0 100"
        )
    try:
        values = [int(t) for t in tokens]
    except ValueError:
        raise InputParseError(f"not a number in {text!r}") from None
    if len(values) == 3:
        values.append(MAX_LUM)
    try:
        return Color(*values, name="custom")
    except ValueError as e:
        raise InputParseError(str(e)) from e


def parse_choice(text, options, default):
    """Map a free-text answer onto one of ``options`` (a dict of answer -> value).

    A blank answer picks ``default``.
    """
    answer = text.strip().lower()
    if not answer:
        return default
    if answer not in options:
        raise InputParseError(f"expected one of {', '.join(sorted(options))}, got {answer!r}")
    return options[answer]


# ----------------------------------------------------------------------
# Command
# ----------------------------------------------------------------------

class CommandMode(Mode):
    """Reads and executes one typed command per tick."""

    mode_id = COMMAND_ID

    def run(self, controller):
        console = controller.console
        line = console.prompt("command", "Enter command (h for help)")
        if line is None:
            console.write("end of input, exiting")
            controller.stop()
            return MIN_SLEEP

        args = line.split()
        if not args:
            return MIN_SLEEP
        cmd = args[0].lower()

        if cmd in ("h", "help"):
            others = [m for m in sorted(controller.modes) if m != COMMAND_ID]
            console.write("help, on, off, printdevices, modes, switchmode <id>, refresh, exit, "
                          + ", ".join(others))
        elif cmd in ("on", "turnon", "off", "turnoff"):
            self._set_all(controller, cmd in ("on", "turnon"))
        elif cmd in ("printdevices", "devices"):
            self._print_devices(controller)
        elif cmd in ("modes", "listmodes"):
            console.write("Modes:")
            for mode_id in sorted(controller.modes):
                marker = " (active)" if controller.mode and controller.mode.mode_id == mode_id else ""
                console.write(f"\t{mode_id}{marker}")
        elif cmd == "switchmode":
            if len(args) < 2:
                console.error("command", "usage: switchmode <id>")
                return MIN_SLEEP
            self._switch(controller, args[1].lower())
        elif cmd == "refresh":
            try:
                devices = controller.refresh_device_cache()
                console.write(f"{len(devices)} device(s) cached")
            except CacheRefreshError as e:
                console.error("command", str(e))
        elif cmd == "exit":
            controller.stop()
        elif cmd in controller.modes:
            self._switch(controller, cmd)
        else:
            console.error("command", f"unrecognized command {line}")

        return MIN_SLEEP

    @staticmethod
    def _switch(controller, mode_id):
        try:
            controller.switch_mode(mode_id)
        except UnknownModeError as e:
            controller.console.error("command", str(e))
            raise

    @staticmethod
    def _set_all(controller, on):
        for device in controller.devices:
            try:
                controller.set_status(device, on)
            except DeviceCommandError as e:
                logger.warning("%s", e)
                controller.console.error("command", str(e))

    @staticmethod
    def _print_devices(controller):
        devices = controller.devices
        if not devices:
            controller.console.write("no devices cached")
            return
        controller.console.write(f"{len(devices)} device(s):")
        for d in devices:
            via = d.ip or "cloud"
            state = "online" if d.online else "offline"
            controller.console.write(f"     {d.name} ({d.device_id}) sku={d.sku} {state} via {via}")


# ----------------------------------------------------------------------
# Ambient modes
# ----------------------------------------------------------------------

class AmbientMode(Mode):
    """Shared tick structure for the indefinite color modes."""

    indefinite = True
    title = ""

    def __init__(self, palette=BASE_COLORS, device_delay=DEVICE_DELAY, sleep=time.sleep, seed=None):
        self.palette = tuple(palette)
        self.device_delay = device_delay
        self.seed = seed
        self._sleep = sleep
        self._device_ids = None

    def on_switch(self, controller):
        controller.console.write(f"Starting {self.title} Mode...")
        if self.seed is not None:
            controller.rng.seed(self.seed)
        self._device_ids = None

    def on_exit(self, controller):
        controller.console.write(f"Exiting {self.title} Mode...")

    def run(self, controller):
        controller.refresh_if_stale()
        devices = list(controller.devices)
        ids = tuple(d.device_id for d in devices)
        if ids != self._device_ids:
            logger.debug("%s: device set changed, rebuilding per-device state", self.mode_id)
            self._device_ids = ids
            self.reset_devices(controller, devices)
        if not devices:
            return 1.0
        controller.console.write(f"\t\t[{self.title} Mode]")
        return self.apply(controller, devices)

    def reset_devices(self, controller, devices):
        pass

    def apply(self, controller, devices):
        raise NotImplementedError

    def push_async(self, controller, devices, colors):
        """Issue fire-and-forget color updates with a pause between devices."""
        for device in devices:
            color = colors[device.device_id]
            controller.set_color_async(device, color)
            controller.console.device_row(device, color)
            self._sleep(self.device_delay)


class RainbowMode(AmbientMode):
    """Random distinct colors every second."""

    mode_id = RAINBOW_ID
    title = "Rainbow"
    interval = 1.0

    def apply(self, controller, devices):
        colors = controller.assign_random_colors(devices, self.palette)
        self.push_async(controller, devices, colors)
        return self.interval


class RollMode(AmbientMode):
    """Walks the palette one step per tick, each device offset by its position."""

    mode_id = ROLL_ID
    title = "Rolling"
    interval = 0.05

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.color_index = 0

    def reset_devices(self, controller, devices):
        self.color_index = 0

    def apply(self, controller, devices):
        colors = rotate_colors(devices, self.palette, self.color_index)
        self.push_async(controller, devices, colors)
        self.color_index = (self.color_index + 1) % len(self.palette)
        return self.interval


class PrettyMode(AmbientMode):
    """Configurable ambient mode: random or rotating colors, instant or smooth.

    Smooth application ramps every device through the Transition Engine and
    waits for all ramps before the tick returns, so consecutive ticks never
    drive the same light at once.
    """

    mode_id = PRETTY_ID
    title = "Pretty"
    instant_interval = 1.0
    smooth_interval = 2.0

    CHOICE_OPTIONS = {"r": True, "random": True, "i": False, "incremental": False}
    APPLY_OPTIONS = {"s": True, "smooth": True, "i": False, "instant": False}

    def __init__(self, *args, steps=TRANSITION_STEPS, step_delay=TRANSITION_DELAY,
                 transition_timeout=TRANSITION_TIMEOUT, **kwargs):
        super().__init__(*args, **kwargs)
        self.steps = steps
        self.step_delay = step_delay
        self.transition_timeout = transition_timeout
        self.random_choice = True
        self.smooth = True
        self.color_index = 0
        self.engine = None

    def on_switch(self, controller):
        self.random_choice = self._ask(
            controller, "color choice, (r)andom or (i)ncremental [r]", self.CHOICE_OPTIONS, True)
        self.smooth = self._ask(
            controller, "apply colors (s)mooth or (i)nstant [s]", self.APPLY_OPTIONS, True)
        self.engine = TransitionEngine(controller, steps=self.steps, delay=self.step_delay,
                                       sleep=self._sleep)
        self.color_index = 0
        super().on_switch(controller)
        logger.info("Pretty mode: %s colors, %s application",
                    "random" if self.random_choice else "incremental",
                    "smooth" if self.smooth else "instant")

    @staticmethod
    def _ask(controller, question, options, default):
        while True:
            answer = controller.console.prompt("pretty", question)
            if answer is None:
                return default
            try:
                return parse_choice(answer, options, default)
            except InputParseError as e:
                controller.console.error("pretty", str(e))

    def reset_devices(self, controller, devices):
        self.color_index = 0

    def apply(self, controller, devices):
        starts = {d.device_id: controller.last_color(d) for d in devices}
        if self.random_choice:
            colors = controller.assign_random_colors(devices, self.palette)
        else:
            colors = rotate_colors(devices, self.palette, self.color_index)
            self.color_index = (self.color_index + 1) % len(self.palette)

        if not self.smooth:
            self.push_async(controller, devices, colors)
            return self.instant_interval

        self.engine.color(
            (d, starts[d.device_id], colors[d.device_id]) for d in devices
        )
        for d in devices:
            controller.console.device_row(d, colors[d.device_id])
        if not self.engine.wait(self.transition_timeout):
            logger.warning("Transitions still running after %ss", self.transition_timeout)
        return self.smooth_interval


# ----------------------------------------------------------------------
# Experiment
# ----------------------------------------------------------------------

class ExperimentMode(Mode):
    """Manual calibration: asks for a literal color for each device."""

    mode_id = EXPERIMENT_ID

    def run(self, controller):
        console = controller.console
        devices = list(controller.devices)
        if not devices:
            console.write("no devices cached, back to command mode")
            controller.switch_mode(COMMAND_ID)
            return PROMPT_SLEEP

        for device in devices:
            line = console.prompt(
                "experiment",
                f"Enter color for device {device.name} as 'r g b brightness' (or 'exit' to leave)")
            if line is None or line.strip().lower() == "exit":
                controller.switch_mode(COMMAND_ID)
                return PROMPT_SLEEP

            try:
                color = parse_color(line)
            except InputParseError as e:
                console.error("experiment", str(e))
                return PROMPT_SLEEP

            try:
                controller.set_color(device, color)
                controller.set_brightness(device, color.brightness)
            except DeviceCommandError as e:
                logger.warning("%s", e)
                console.error("experiment", str(e))
                continue
            console.write(f"\t{color.format_rgb()} @ {color.brightness} - {device.name}")

        return PROMPT_SLEEP


def default_modes():
    return [CommandMode(), RainbowMode(), RollMode(), PrettyMode(), ExperimentMode()]
