import random

import pytest

from lightloop.services.controller import Controller
from lightloop.services.device_cache import Device

from fakes import FakeClient, FakeConsole, FakeListener


@pytest.fixture
def devices():
    return [
        Device("AA:01", "Desk Lamp", sku="H6008"),
        Device("AA:02", "Floor Lamp", sku="H6008", ip="192.168.1.20"),
        Device("AA:03", "Shelf", sku="H6008"),
    ]


@pytest.fixture
def client(devices):
    return FakeClient(devices)


@pytest.fixture
def console():
    return FakeConsole()


@pytest.fixture
def make_controller(client, console):
    """Build a Controller wired to fakes, with the device cache already loaded."""

    def _make(modes=None, listener=None, rng=None, refresh=True):
        listener = listener or FakeListener()
        controller = Controller(
            client,
            modes=modes,
            console=console,
            rng=rng or random.Random(1234),
            listener_factory=lambda: listener,
        )
        controller.listener_for_test = listener
        if refresh:
            controller.refresh_device_cache()
        return controller

    return _make
