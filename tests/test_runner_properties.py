"""Property-based tests for self-echo detection."""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from crm_sync.models.record import LocalRecord, RemoteRecord
from crm_sync.sync.runner import Runner

timestamps = st.datetimes(
    min_value=datetime(2020, 1, 1), max_value=datetime(2030, 1, 1)
).map(lambda naive: naive.replace(tzinfo=timezone.utc))


def remote_record(modified: datetime) -> RemoteRecord:
    return RemoteRecord(
        id="a00000000000000001",
        record_type="Contact",
        last_modified_at=modified,
        fields={"Email": "ada@example.com"},
    )


def local_record(modified: datetime, marker: datetime | None = None) -> LocalRecord:
    return LocalRecord(
        id="1",
        record_type="contacts",
        external_id="a00000000000000001",
        last_modified_at=modified,
        synchronized_at=marker,
        attributes={"email": "ada@example.com"},
    )


class TestFirstTimeSync:
    """Records without a marker are always treated as changed."""

    @given(modified=timestamps)
    @settings(max_examples=100)
    def test_remote_without_marker_is_changed(self, modified: datetime) -> None:
        assert Runner().changed(remote_record(modified), None) is True

    @given(modified=timestamps)
    @settings(max_examples=100)
    def test_local_without_marker_is_changed(self, modified: datetime) -> None:
        assert Runner().changed(local_record(modified), None) is True


class TestSelfEchoSuppression:
    """Modifications no later than the marker are the engine's own writes."""

    @given(modified=timestamps, lag=st.integers(min_value=0, max_value=86_400))
    @settings(max_examples=100)
    def test_marker_at_or_after_modification_is_unchanged(
        self, modified: datetime, lag: int
    ) -> None:
        marker = modified + timedelta(seconds=lag)

        assert Runner().changed(remote_record(modified), marker) is False
        assert Runner().changed(local_record(modified, marker), marker) is False

    @given(modified=timestamps, lead=st.integers(min_value=1, max_value=86_400))
    @settings(max_examples=100)
    def test_modification_after_marker_is_changed(self, modified: datetime, lead: int) -> None:
        marker = modified - timedelta(seconds=lead)

        assert Runner().changed(remote_record(modified), marker) is True
        assert Runner().changed(local_record(modified, marker), marker) is True

    def test_one_microsecond_after_marker_is_changed(self) -> None:
        marker = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)

        record = remote_record(marker + timedelta(microseconds=1))

        assert Runner().changed(record, marker) is True
