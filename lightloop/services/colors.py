"""Color value type and the fixed palette used by the ambient modes."""

from collections import namedtuple

MAX_LUM = 100


class Color(namedtuple("Color", ["r", "g", "b", "brightness", "name"])):
    """An (r, g, b) triple in 0-255 plus a 0-100 brightness.

    Immutable. ``name`` is only set for colors drawn from a palette.
    """

    __slots__ = ()

    def __new__(cls, r, g, b, brightness=MAX_LUM, name=""):
        for channel in (r, g, b):
            if not 0 <= channel <= 255:
                raise ValueError(f"color channel {channel} out of range 0-255")
        if not 0 <= brightness <= MAX_LUM:
            raise ValueError(f"brightness {brightness} out of range 0-{MAX_LUM}")
        return super().__new__(cls, int(r), int(g), int(b), int(brightness), name)

    @property
    def rgb(self):
        return (self.r, self.g, self.b)

    def is_zero(self):
        return self.rgb == (0, 0, 0)

    def to_int(self):
        """Pack as 0xRRGGBB, the form the cloud API expects."""
        return (self.r << 16) | (self.g << 8) | self.b

    def with_brightness(self, brightness):
        return self._replace(brightness=max(0, min(MAX_LUM, int(brightness))))

    def label(self):
        return self.name or "custom"

    def format_rgb(self):
        return "[" + ", ".join(f"{v:03d}" for v in self.rgb) + "]"


ZERO = Color(0, 0, 0, 0, "off")

RED = Color(255, 0, 0, name="red")
ORANGE = Color(255, 128, 0, name="orange")
YELLOW = Color(255, 255, 0, name="yellow")
YELLOW_GREEN = Color(128, 255, 0, name="yellow-green")
GREEN = Color(0, 255, 0, name="green")
TEAL_GREEN = Color(0, 255, 128, name="teal-green")
TEAL = Color(0, 255, 255, name="teal")
LIGHT_BLUE = Color(0, 128, 255, name="light-blue")
BLUE = Color(0, 0, 255, name="blue")
PURPLE = Color(127, 0, 255, name="purple")
PINK = Color(255, 0, 255, name="pink")
RED_PINK = Color(255, 0, 127, name="red-pink")

# Order matters for the rotating modes.
BASE_COLORS = (
    RED, ORANGE, YELLOW, YELLOW_GREEN, GREEN, TEAL_GREEN,
    TEAL, LIGHT_BLUE, BLUE, PURPLE, PINK, RED_PINK,
)


def same_rgb(a, b):
    """Compare two colors by channel values only, ignoring name and brightness."""
    if a is None or b is None:
        return False
    return a.rgb == b.rgb
