import pytest

from lightloop.services.device_cache import Device, DeviceCache
from lightloop.services.errors import CacheRefreshError

from fakes import FakeClient


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_refresh_stores_devices_and_time(devices):
    clock = FakeClock()
    cache = DeviceCache(clock=clock)
    cache.refresh(FakeClient(devices))

    assert cache.devices == devices
    assert cache.updated_at == 1000.0
    assert cache.device_ids() == ("AA:01", "AA:02", "AA:03")
    assert cache.find("AA:02").name == "Floor Lamp"
    assert cache.find("missing") is None


def test_failed_refresh_keeps_stale_list(devices):
    clock = FakeClock()
    cache = DeviceCache(clock=clock)
    client = FakeClient(devices)
    cache.refresh(client)

    clock.now += 60
    client.listing_error = ConnectionError("timed out")
    with pytest.raises(CacheRefreshError) as exc:
        cache.refresh(client)

    assert isinstance(exc.value.__cause__, ConnectionError)
    assert cache.devices == devices
    assert cache.updated_at == 1000.0


def test_staleness():
    clock = FakeClock()
    cache = DeviceCache(clock=clock)
    assert cache.age() is None
    assert cache.is_stale()

    cache.refresh(FakeClient([]))
    clock.now += 30
    assert cache.age() == 30
    assert not cache.is_stale(max_age=30)
    clock.now += 1
    assert cache.is_stale(max_age=30)


def test_device_from_cloud_payload():
    d = Device.from_cloud({
        "sku": "H6008",
        "device": "9A:BC:DE",
        "deviceName": "Bedroom",
        "capabilities": [{"type": "devices.capabilities.on_off", "instance": "powerSwitch"}],
    })
    assert d.device_id == "9A:BC:DE"
    assert d.name == "Bedroom"
    assert d.sku == "H6008"
    assert d.ip is None
    assert len(d.capabilities) == 1


def test_device_without_name_uses_id():
    assert Device.from_cloud({"device": "11:22", "sku": "H6008"}).name == "11:22"
