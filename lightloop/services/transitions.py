"""Multi-step brightness and color ramps, one thread per device.

Each ramp issues a bounded number of commands with a fixed pause between
them. ``TransitionEngine`` fans the ramps out over daemon threads and counts
them on a ``CompletionBarrier`` so a mode can wait for every device to
finish before its next tick starts new ramps on the same lights.
"""

import logging
import threading
import time

from lightloop.services.colors import MAX_LUM, Color
from lightloop.services.errors import DeviceCommandError

logger = logging.getLogger(__name__)

TRANSITION_STEPS = 10
TRANSITION_DELAY = 0.1  # seconds between steps
DEFAULT_START = Color(255, 255, 255, MAX_LUM, "white")


class CompletionBarrier:
    """Counts outstanding tasks; ``wait`` returns once the count drops to zero."""

    def __init__(self):
        self._pending = 0
        self._cond = threading.Condition()

    @property
    def pending(self):
        with self._cond:
            return self._pending

    def add(self, n=1):
        with self._cond:
            self._pending += n

    def done(self):
        with self._cond:
            if self._pending <= 0:
                raise RuntimeError("done() called more times than add()")
            self._pending -= 1
            if self._pending == 0:
                self._cond.notify_all()

    def wait(self, timeout=None):
        """Block until no tasks are pending. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)


def _decay(start, target, step_index):
    return target + round((start - target) / step_index)


def ramp_brightness(commands, device, target, start=MAX_LUM,
                    steps=TRANSITION_STEPS, delay=TRANSITION_DELAY, sleep=time.sleep):
    """Decay brightness from ``start`` toward ``target.brightness``, then set the color.

    Issues exactly ``steps`` brightness calls on a ``value / step_index``
    schedule (the distance to the target level divided by 1, 2, .. steps),
    followed by one ``set_color(device, target)`` which lands the final value.
    """
    steps = max(1, int(steps))
    for step_index in range(1, steps + 1):
        commands.set_brightness(device, _decay(int(start), target.brightness, step_index))
        sleep(delay)
    commands.set_color(device, target)


def ramp_color(commands, device, target, start=None,
               steps=TRANSITION_STEPS, delay=TRANSITION_DELAY, sleep=time.sleep):
    """Walk the color of ``device`` from ``start`` to ``target``.

    Step ``i`` sits at ``target + (start - target) / i`` on every channel.
    Step 1 is the start color itself and is not sent; the intermediate steps
    go out through ``set_color_step``, which leaves no record, and the ramp
    always finishes with ``set_color(device, target)``. A step equal to the
    target, or a zero step while the target is lit, jumps straight to the
    target. At most ``steps`` calls are made.

    Returns:
        The target color.
    """
    steps = max(1, int(steps))
    start = start or DEFAULT_START
    for step_index in range(2, steps):
        step = Color(*(_decay(s, t, step_index) for s, t in zip(start[:4], target[:4])))
        # Never pass through black on the way to a lit target.
        if step.rgb == target.rgb or (step.is_zero() and not target.is_zero()):
            break
        commands.set_color_step(device, step)
        sleep(delay)
    commands.set_color(device, target)
    return target


class TransitionEngine:
    """Runs ramps for many devices concurrently.

    ``commands`` is anything with ``set_color(device, color)``,
    ``set_color_step(device, color)`` and ``set_brightness(device, level)``,
    normally the Controller.
    """

    def __init__(self, commands, steps=TRANSITION_STEPS, delay=TRANSITION_DELAY, sleep=time.sleep):
        self.commands = commands
        self.steps = steps
        self.delay = delay
        self._sleep = sleep
        self.barrier = CompletionBarrier()

    def _spawn(self, fn, device, *args):
        self.barrier.add()
        thread = threading.Thread(
            target=self._run_task, args=(fn, device) + args, daemon=True
        )
        thread.start()
        return thread

    def _run_task(self, fn, device, *args):
        try:
            fn(self.commands, device, *args,
               steps=self.steps, delay=self.delay, sleep=self._sleep)
        except DeviceCommandError as e:
            logger.warning("Transition aborted: %s", e)
        except Exception:
            logger.exception("Transition for %s failed", getattr(device, "name", device))
        finally:
            self.barrier.done()

    def color(self, targets):
        """Start a color ramp per device.

        Args:
            targets: Iterable of (device, start_color_or_None, target_color).
        """
        return [self._spawn(ramp_color, device, target, start)
                for device, start, target in targets]

    def brightness(self, targets):
        """Start a brightness ramp per device.

        Args:
            targets: Iterable of (device, start_level, target_color).
        """
        return [self._spawn(ramp_brightness, device, target, start)
                for device, start, target in targets]

    def wait(self, timeout=None):
        return self.barrier.wait(timeout)
