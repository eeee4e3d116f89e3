"""
Tests for display discovery.
"""

import sys

import pytest
from unittest.mock import MagicMock

from ebike_hmi.core.discovery import DisplayDiscovery, DisplayInfo, is_known_display


def _entry(pid: int, path: bytes, product: str = "Display", vid: int = 0x108C) -> dict:
    """Build a hid.enumerate entry."""
    return {
        "path": path,
        "vendor_id": vid,
        "product_id": pid,
        "serial_number": "ABC123",
        "manufacturer_string": "Vendor",
        "product_string": product,
        "interface_number": 0,
    }


class FakeEnumerator:
    """Stand-in for hid.enumerate."""

    def __init__(self, entries: list[dict]):
        self.entries = entries
        self.calls: list[tuple[int, int]] = []

    def __call__(self, vendor_id: int, product_id: int) -> list[dict]:
        self.calls.append((vendor_id, product_id))
        return list(self.entries)


class TestKnownDisplays:
    """Tests for the known display table."""

    def test_known(self):
        """Test BUI25x is known."""
        assert is_known_display(0x108C, 0x0155)

    def test_unknown(self):
        """Test other pairs are not."""
        assert not is_known_display(0x108C, 0x0001)
        assert not is_known_display(0x0403, 0x0155)


class TestDisplayDiscovery:
    """Tests for DisplayDiscovery class."""

    def test_known_display_ranked_first(self):
        """Test known product ids outrank unknown ones."""
        enumerator = FakeEnumerator([
            _entry(0x0001, b"/dev/hidraw1", "Other"),
            _entry(0x0155, b"/dev/hidraw2", "BUI"),
        ])
        discovery = DisplayDiscovery(enumerator=enumerator)

        displays = discovery.discover()

        assert [d.path for d in displays] == [b"/dev/hidraw2", b"/dev/hidraw1"]
        assert displays[0].known
        assert displays[0].name == "BUI25x"
        assert displays[1].name == "Other"
        assert enumerator.calls == [(0x108C, 0)]

    def test_foreign_vendor_filtered(self):
        """Test devices of other vendors are ignored."""
        discovery = DisplayDiscovery(
            enumerator=FakeEnumerator([_entry(0x0155, b"/dev/hidraw0", vid=0x046D)])
        )

        assert discovery.discover() == []

    def test_duplicate_paths_collapsed(self):
        """Test one entry per device path."""
        discovery = DisplayDiscovery(
            enumerator=FakeEnumerator([
                _entry(0x0155, b"/dev/hidraw0"),
                _entry(0x0155, b"/dev/hidraw0"),
            ])
        )

        assert len(discovery.discover()) == 1

    def test_last_known_bonus(self):
        """Test the last successful device wins among equals."""
        discovery = DisplayDiscovery(
            last_known_device="/dev/hidraw5",
            enumerator=FakeEnumerator([
                _entry(0x0155, b"/dev/hidraw4"),
                _entry(0x0155, b"/dev/hidraw5"),
            ]),
        )

        best = discovery.get_best_display()

        assert best is not None
        assert best.path_str == "/dev/hidraw5"

    def test_results_cached(self):
        """Test enumeration is cached until refresh."""
        enumerator = FakeEnumerator([_entry(0x0155, b"/dev/hidraw0")])
        discovery = DisplayDiscovery(enumerator=enumerator)

        discovery.discover()
        discovery.discover()
        assert len(enumerator.calls) == 1

        discovery.refresh()
        assert len(enumerator.calls) == 2

    def test_get_display_by_path(self):
        """Test lookup by path."""
        discovery = DisplayDiscovery(
            enumerator=FakeEnumerator([_entry(0x0155, b"/dev/hidraw0")])
        )

        assert discovery.get_display_by_path("/dev/hidraw0") is not None
        assert discovery.get_display_by_path("/dev/hidraw9") is None

    def test_no_devices(self):
        """Test empty enumeration."""
        discovery = DisplayDiscovery(enumerator=FakeEnumerator([]))

        assert discovery.get_best_display() is None


class TestDisplayInfo:
    """Tests for DisplayInfo."""

    def test_to_dict(self):
        """Test UI description uses hex ids."""
        info = DisplayInfo(
            path=b"/dev/hidraw0",
            vendor_id=0x108C,
            product_id=0x0155,
            name="BUI25x",
            product="Display",
            manufacturer="Vendor",
            serial_number=None,
            interface_number=0,
            known=True,
            score=110,
        )

        data = info.to_dict()

        assert data["vendorId"] == "0x108C"
        assert data["productId"] == "0x0155"
        assert data["path"] == "/dev/hidraw0"
        assert "BUI25x" in str(info)


class TestHidEnumeration:
    """Tests for the default enumerator built on hid.enumerate."""

    def test_enumerates_vendor(self, monkeypatch: pytest.MonkeyPatch):
        """Test all products of the vendor are requested."""
        module = MagicMock(spec=["Device", "enumerate"])
        module.enumerate.return_value = [_entry(0x0155, b"/dev/hidraw0")]
        monkeypatch.setitem(sys.modules, "hid", module)

        displays = DisplayDiscovery().discover()

        module.enumerate.assert_called_once_with(0x108C, 0)
        assert [d.path for d in displays] == [b"/dev/hidraw0"]

    def test_library_missing(self, monkeypatch: pytest.MonkeyPatch):
        """Test a missing hid package yields no displays."""
        monkeypatch.setitem(sys.modules, "hid", None)

        assert DisplayDiscovery().discover() == []
