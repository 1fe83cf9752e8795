"""Notification store: validation, duplicates and the freshness window."""

from datetime import timedelta, timezone

import pytest

from timing_remote.core.exceptions import ConflictError, ValidationError
from timing_remote.db.notifications import parse_when
from timing_remote.db.types import KeyScope, NotificationType


def _rfc3339(dt):
    return dt.isoformat().replace("+00:00", "Z")


@pytest.fixture
def writer(account, make_key):
    return make_key(account, "writer-key", scope=KeyScope.WRITE, reader_name="r1")


class TestParsing:
    def test_zulu_and_offsets(self):
        assert parse_when("1970-01-01T00:01:40Z") == 100
        assert parse_when("1970-01-01T01:01:40+01:00") == 100
        assert parse_when("1970-01-01T00:01:40.250Z") == 100

    @pytest.mark.parametrize(
        "value",
        [
            "yesterday",
            "",
            "2024-06-01T12:00:00",
            "2024-06-01T12:00+00:00",
            "20240601T120000Z",
            "2024-06-01T12+00:00",
            "2024-06-01 12:00:00Z",
            "2024-13-01T12:00:00Z",
        ],
    )
    def test_rejects_invalid_times(self, value):
        with pytest.raises(ValidationError):
            parse_when(value)


class TestSave:
    def test_save_and_fetch(self, store, account, writer, clock):
        when = clock.now - timedelta(minutes=1)
        assert store.save_notification("UPS_ON_BATTERY", _rfc3339(when), writer.value) is True

        note = store.get_notification(account.id, "r1")
        assert note.type == NotificationType.UPS_ON_BATTERY
        assert note.when == int(when.timestamp())
        assert note.key_value == writer.value

    def test_duplicate_timestamp_is_silent(self, store, account, writer, clock):
        when = _rfc3339(clock.now)
        assert store.save_notification("HIGH_TEMP", when, writer.value) is True
        assert store.save_notification("MAX_TEMP", when, writer.value) is False
        assert store.get_notification(account.id, "r1").type == NotificationType.HIGH_TEMP

    def test_unknown_type_rejected(self, store, writer, clock):
        with pytest.raises(ValidationError):
            store.save_notification("SOLAR_FLARE", _rfc3339(clock.now), writer.value)

    def test_time_without_offset_rejected(self, store, writer):
        with pytest.raises(ValidationError):
            store.save_notification("RESTARTING", "2024-06-01T12:00:00", writer.value)

    def test_unknown_key_conflicts(self, store, clock):
        with pytest.raises(ConflictError):
            store.save_notification("RESTARTING", _rfc3339(clock.now), "no-such-key")

    def test_accepts_aware_datetime(self, store, account, writer, clock):
        store.save_notification(NotificationType.UPS_ONLINE, clock.now, writer.value)
        assert store.get_notification(account.id, "r1").type == NotificationType.UPS_ONLINE


class TestFreshness:
    def test_four_fifty_nine_old_is_returned(self, store, account, writer, clock):
        when = clock.now - timedelta(minutes=4, seconds=59)
        store.save_notification("SHUTTING_DOWN", _rfc3339(when), writer.value)
        assert store.get_notification(account.id, "r1") is not None

    def test_older_than_five_minutes_is_none(self, store, account, writer, clock):
        when = clock.now - timedelta(minutes=5, seconds=1)
        store.save_notification("SHUTTING_DOWN", _rfc3339(when), writer.value)
        assert store.get_notification(account.id, "r1") is None

    def test_goes_stale_as_clock_advances(self, store, account, writer, clock):
        store.save_notification("UPS_CONNECTED", _rfc3339(clock.now), writer.value)
        assert store.get_notification(account.id, "r1") is not None
        clock.advance(minutes=5)
        assert store.get_notification(account.id, "r1") is None

    def test_newest_wins(self, store, account, writer, clock):
        store.save_notification("UPS_DISCONNECTED", _rfc3339(clock.now - timedelta(seconds=30)), writer.value)
        store.save_notification("UPS_CONNECTED", _rfc3339(clock.now - timedelta(seconds=10)), writer.value)
        store.save_notification("UPS_LOW_BATTERY", _rfc3339(clock.now - timedelta(seconds=20)), writer.value)
        assert store.get_notification(account.id, "r1").type == NotificationType.UPS_CONNECTED

    def test_same_instant_across_keys_prefers_latest_insert(self, store, account, writer, make_key, clock):
        when = _rfc3339(clock.now)
        store.save_notification("HIGH_TEMP", when, writer.value)
        store.delete_key(writer.value)
        replacement = make_key(account, "replacement", reader_name="r1")
        store.save_notification("MAX_TEMP", when, replacement.value)

        assert store.get_notification(account.id, "r1").type == NotificationType.MAX_TEMP

    def test_other_reader_not_visible(self, store, account, writer, make_key, clock):
        other = make_key(account, "other", reader_name="r2")
        store.save_notification("RESTARTING", _rfc3339(clock.now), other.value)
        assert store.get_notification(account.id, "r1") is None
        assert store.get_notification(account.id, "r2").key_value == other.value

    def test_offset_times_compare_in_utc(self, store, account, writer, clock):
        local = clock.now.astimezone(timezone(timedelta(hours=-7)))
        store.save_notification("UPS_ONLINE", local.isoformat(), writer.value)
        assert store.get_notification(account.id, "r1").when == int(clock.now.timestamp())
