"""Pick one palette color per device.

Two policies are used by the ambient modes:

- ``assign_colors``: random draws with a soft constraint that a device does
  not get its previous color back and no two devices share a color within
  one round. The constraint is best-effort. When the attempt budget runs
  out the last draw is taken anyway, so the call never blocks and, once the
  device count nears the palette size, collisions are tolerated silently.
- ``rotate_colors``: device ``i`` gets ``palette[(offset + i) % len]``.
"""

import logging
import random

from lightloop.services.colors import same_rgb

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 1000


def assign_colors(devices, palette, last_colors, rng=None, max_attempts=MAX_ATTEMPTS):
    """Assign a random palette color to every device.

    Args:
        devices: Devices in the order they should be served.
        palette: Sequence of Colors to draw from.
        last_colors: Dict of device_id -> Color from the previous round.
            Updated in place with the accepted colors.
        rng: Object with a ``choice`` method; defaults to the random module.
        max_attempts: Draws per device before accepting a conflicting color.

    Returns:
        Dict of device_id -> Color.
    """
    if not palette:
        raise ValueError("palette must not be empty")
    rng = rng or random

    out = {}
    for device in devices:
        previous = last_colors.get(device.device_id)
        color = None
        for _ in range(max(1, max_attempts)):
            color = rng.choice(palette)
            if same_rgb(color, previous):
                continue
            if any(same_rgb(color, claimed) for claimed in out.values()):
                continue
            break
        else:
            logger.debug("No conflict-free color for %s after %d draws, using %s",
                         device.device_id, max_attempts, color.label())

        out[device.device_id] = color
        last_colors[device.device_id] = color

    return out


def rotate_colors(devices, palette, offset):
    """Map each device to the palette entry ``offset`` places along from its index."""
    if not palette:
        raise ValueError("palette must not be empty")
    return {
        device.device_id: palette[(offset + i) % len(palette)]
        for i, device in enumerate(devices)
    }
