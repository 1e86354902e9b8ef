from conftest import DEFAULT_LOCATION
from config_store import ConfigStore
from models import Location, TimezoneState


def test_round_trip(store):
    location = Location(latitude="35.6895", longitude="139.6917")
    tz = TimezoneState(iana_name="Asia/Tokyo", utc_offset_seconds=32400)

    store.save(location, tz)
    loaded_location, loaded_tz = store.load(DEFAULT_LOCATION)

    assert loaded_location == location
    assert loaded_tz.iana_name == "Asia/Tokyo"
    assert loaded_tz.utc_offset_seconds == 32400
    assert loaded_tz.resolved_tz is not None


def test_save_is_idempotent(store):
    location = Location(latitude="1.0", longitude="2.0")
    store.save(location, TimezoneState())
    with open(store.path) as f:
        first = f.read()
    store.save(location, TimezoneState())
    with open(store.path) as f:
        assert f.read() == first


def test_missing_file_gives_defaults(tmp_path):
    store = ConfigStore(str(tmp_path / "nope" / "weatherclock.toml"))
    location, tz = store.load(DEFAULT_LOCATION)
    assert location == DEFAULT_LOCATION
    assert tz.is_empty


def test_malformed_file_gives_defaults(store):
    with open(store.path, "w") as f:
        f.write("this is [not toml")
    location, tz = store.load(DEFAULT_LOCATION)
    assert location == DEFAULT_LOCATION
    assert tz.is_empty


def test_partial_record_keeps_defaults(store):
    with open(store.path, "w") as f:
        f.write('[location]\nlatitude = "51.5"\nlongitude = "-0.12345678901234567890"\n')
    location, tz = store.load(DEFAULT_LOCATION)
    assert location.latitude == "51.5"
    assert location.longitude == DEFAULT_LOCATION.longitude
    assert tz.utc_offset_seconds == 0


def test_wrong_types_are_ignored(store):
    with open(store.path, "w") as f:
        f.write('[location]\nlatitude = 51.5\ntimezone = 7\nutc_offset_seconds = "x"\n')
    location, tz = store.load(DEFAULT_LOCATION)
    assert location == DEFAULT_LOCATION
    assert tz.is_empty


def test_unresolvable_saved_timezone_keeps_name(store):
    store.save(DEFAULT_LOCATION, TimezoneState(iana_name="Bogus/Zone", utc_offset_seconds=-14400))
    _, tz = store.load(DEFAULT_LOCATION)
    assert tz.iana_name == "Bogus/Zone"
    assert tz.resolved_tz is None
    assert tz.utc_offset_seconds == -14400


def test_save_failure_does_not_raise(tmp_path):
    store = ConfigStore(str(tmp_path))
    store.save(DEFAULT_LOCATION, TimezoneState())
