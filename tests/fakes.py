"""Stand-ins for the device client, console, input listener and random source."""

from lightloop.services.errors import DeviceCommandError


class FakeClient:
    """Records every device call instead of talking to the cloud."""

    def __init__(self, devices=None):
        self.devices = list(devices or [])
        self.calls = []
        self.failing = set()  # device ids whose commands raise
        self.listing_error = None

    def list_devices(self):
        if self.listing_error:
            raise self.listing_error
        return list(self.devices)

    def _record(self, action, device, *args):
        if device.device_id in self.failing:
            raise DeviceCommandError(device, action, "simulated failure")
        self.calls.append((action, device.device_id) + args)

    def set_status(self, device, on):
        self._record("status", device, on)

    def set_status_async(self, device, on):
        self.calls.append(("status_async", device.device_id, on))

    def set_color(self, device, r, g, b):
        self._record("color", device, r, g, b)

    def set_color_async(self, device, r, g, b):
        self.calls.append(("color_async", device.device_id, r, g, b))

    def set_brightness(self, device, level):
        self._record("brightness", device, level)

    def set_brightness_async(self, device, level):
        self.calls.append(("brightness_async", device.device_id, level))

    def calls_for(self, device_id, action=None):
        return [c for c in self.calls
                if c[1] == device_id and (action is None or c[0] == action)]


class FakeConsole:
    def __init__(self, answers=()):
        self.answers = list(answers)
        self.prompts = []
        self.lines = []
        self.stream = None

    def prompt(self, component, text):
        self.prompts.append(text)
        if not self.answers:
            return None
        return self.answers.pop(0)

    def write(self, text=""):
        self.lines.append(text)

    def error(self, component, text):
        self.lines.append(f"[{component}] error: {text}")

    def device_row(self, device, color):
        self.lines.append(f"{device.name} {color.label()}")

    def errors(self):
        return [line for line in self.lines if "error:" in line]


class FakeListener:
    def __init__(self, lines=()):
        self.lines = list(lines)
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True
        return self

    def stop(self):
        self.stopped = True

    def poll(self, timeout):
        if self.lines:
            return self.lines.pop(0)
        return None


class ScriptedRng:
    """Stands in for random.Random, handing out a fixed sequence of draws."""

    def __init__(self, draws):
        self.draws = list(draws)

    def choice(self, seq):
        return self.draws.pop(0)

    def seed(self, a=None):
        pass
