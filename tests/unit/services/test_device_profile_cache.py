from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from auralink.domain.device_profile import DeviceProfile
from auralink.enums import ProfileField
from auralink.services.application.device_profile_cache import DeviceProfileCache


def test_unknown_device_resolves_to_empty_strings(profile_cache):
    assert profile_cache.get_field("ghost", ProfileField.PLANT_NAME) == ""
    assert profile_cache.get_field("ghost", ProfileField.NOTIFY_EMAIL) == ""
    assert profile_cache.get_profile("ghost") == DeviceProfile(device_id="ghost")


def test_read_through_loads_stored_profile(device_repo, profile_cache):
    device_repo.set_field("desk-01", ProfileField.PLANT_NAME, "Fern")

    assert "desk-01" not in profile_cache
    assert profile_cache.get_field("desk-01", "plant_name") == "Fern"
    assert "desk-01" in profile_cache


def test_read_through_hits_storage_once():
    repo = MagicMock()
    repo.get_profile.return_value = DeviceProfile(device_id="a", plant_name="Basil")
    cache = DeviceProfileCache(repo)

    cache.get_profile("a")
    cache.get_profile("a")

    repo.get_profile.assert_called_once_with("a")


def test_set_field_merges_and_trims(profile_cache):
    profile_cache.set_field("a", ProfileField.PLANT_NAME, "  Basil ")
    profile_cache.set_field("a", ProfileField.NOTIFY_EMAIL, "g@example.com")

    profile = profile_cache.get_profile("a")
    assert profile.plant_name == "Basil"
    assert profile.notify_email == "g@example.com"


def test_set_field_rejects_unknown_field(profile_cache):
    with pytest.raises(ValueError):
        profile_cache.set_field("a", "favourite_colour", "green")


def test_set_field_ignores_empty_device_id(profile_cache):
    profile_cache.set_field("", ProfileField.PLANT_NAME, "Basil")
    assert "" not in profile_cache


def test_warm_caches_only_known_devices(device_repo, profile_cache):
    device_repo.set_field("desk-01", ProfileField.PLANT_NAME, "Fern")

    profile_cache.warm("desk-01")
    profile_cache.warm("ghost")

    assert "desk-01" in profile_cache
    assert "ghost" not in profile_cache


def test_storage_errors_never_escape():
    repo = MagicMock()
    repo.get_profile.side_effect = RuntimeError("disk gone")
    cache = DeviceProfileCache(repo)

    cache.warm("a")
    assert cache.get_field("a", ProfileField.PLANT_NAME) == ""


def test_invalidate_and_clear(device_repo, profile_cache):
    profile_cache.set_field("a", ProfileField.PLANT_NAME, "Basil")
    profile_cache.set_field("b", ProfileField.PLANT_NAME, "Mint")

    profile_cache.invalidate("a")
    assert "a" not in profile_cache
    assert "b" in profile_cache

    profile_cache.clear()
    assert "b" not in profile_cache


def test_works_without_repository():
    cache = DeviceProfileCache()
    cache.warm("a")
    assert cache.get_field("a", ProfileField.PLANT_NAME) == ""
