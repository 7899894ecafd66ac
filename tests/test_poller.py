from __future__ import annotations

import asyncio
import logging
from datetime import date

import pytest

from pyrata._throttle import ThrottledExecutor
from pyrata.cache import MetadataStore
from pyrata.exceptions import RataRateLimitError, RataTransportError
from pyrata.models.metadata import EnrichedPosition, TrainMetadata
from pyrata.models.position import TrainLocation
from pyrata.models.timetable import Train
from pyrata.poller import PositionPoller

TODAY = date(2026, 10, 19)


def _location(number: int) -> TrainLocation:
    return TrainLocation.model_validate(
        {
            "trainNumber": number,
            "departureDate": TODAY.isoformat(),
            "timestamp": "2026-10-19T08:15:30.000Z",
            "location": {"type": "Point", "coordinates": [24.9, 60.2]},
            "speed": 50,
        }
    )


def _train(number: int, origin: str, dest: str) -> Train:
    return Train.model_validate(
        {
            "trainNumber": number,
            "departureDate": TODAY.isoformat(),
            "timeTableRows": [
                {"stationShortCode": origin, "type": "DEPARTURE"},
                {"stationShortCode": dest, "type": "ARRIVAL"},
            ],
        }
    )


class _FakeSource:
    def __init__(self, numbers: list[int]) -> None:
        self.numbers = numbers
        self.trains: dict[int, Train | None] = {}
        self.errors: dict[int, Exception] = {}
        self.feed_errors: list[Exception] = []
        self.gate: asyncio.Event | None = None
        self.train_calls: list[tuple[int | str, date]] = []

    async def get_latest_locations(self) -> list[TrainLocation]:
        if self.feed_errors:
            raise self.feed_errors.pop(0)
        return [_location(n) for n in self.numbers]

    async def get_train(self, train_number: int | str, departure_date: date) -> Train | None:
        self.train_calls.append((train_number, departure_date))
        if self.gate is not None:
            await self.gate.wait()
        error = self.errors.get(int(train_number))
        if error is not None:
            raise error
        return self.trains.get(int(train_number))


def _poller(
    source: _FakeSource,
    *,
    max_per_window: int = 50,
    max_backlog: int | None = None,
    **kwargs: object,
) -> tuple[PositionPoller, MetadataStore, ThrottledExecutor]:
    store = MetadataStore(today=lambda: TODAY)
    executor = ThrottledExecutor(max_per_window=max_per_window, window=60.0, max_backlog=max_backlog)
    poller = PositionPoller(source, store, executor, **kwargs)  # type: ignore[arg-type]
    return poller, store, executor


@pytest.mark.asyncio
async def test_metadata_appears_on_next_tick_not_current() -> None:
    source = _FakeSource([905])
    source.trains[905] = _train(905, "HKI", "TPE")
    poller, store, executor = _poller(source)

    first = await poller.poll_once()
    assert first[0].origin is None
    assert first[0].dest is None
    assert executor.admitted_in_window == 1

    await executor.wait_idle()
    second = await poller.poll_once()

    assert second[0].origin == "HKI"
    assert second[0].dest == "TPE"
    assert source.train_calls == [(905, TODAY)]
    assert store.get(905) == TrainMetadata(origin="HKI", dest="TPE")


@pytest.mark.asyncio
async def test_in_flight_fetch_is_not_submitted_twice() -> None:
    source = _FakeSource([905])
    source.trains[905] = _train(905, "HKI", "TPE")
    source.gate = asyncio.Event()
    poller, _store, executor = _poller(source)

    await poller.poll_once()
    await asyncio.sleep(0)
    await poller.poll_once()
    await poller.poll_once()

    assert executor.admitted_in_window == 1
    assert executor.pending == 0
    assert poller.in_flight == frozenset({"905-2026-10-19"})

    source.gate.set()
    await executor.wait_idle()
    await poller.poll_once()

    assert len(source.train_calls) == 1
    assert poller.in_flight == frozenset()


@pytest.mark.asyncio
async def test_resolved_train_is_never_fetched_again() -> None:
    source = _FakeSource([1, 2])
    source.trains[1] = _train(1, "HKI", "TKU")
    source.trains[2] = _train(2, "TPE", "OL")
    poller, _store, executor = _poller(source)

    for _ in range(3):
        await poller.poll_once()
        await executor.wait_idle()

    assert sorted(number for number, _day in source.train_calls) == [1, 2]
    assert [(p.train_number, p.origin, p.dest) for p in poller.latest] == [(1, "HKI", "TKU"), (2, "TPE", "OL")]


@pytest.mark.asyncio
async def test_cached_metadata_skips_fetch() -> None:
    source = _FakeSource([905])
    poller, store, executor = _poller(source)
    store.set(905, TrainMetadata(origin="HKI", dest="TPE"))

    result = await poller.poll_once()

    assert result[0].origin == "HKI"
    assert executor.admitted_in_window == 0
    assert source.train_calls == []


@pytest.mark.asyncio
async def test_rate_limited_fetch_is_dropped_and_retried_later(caplog: pytest.LogCaptureFixture) -> None:
    source = _FakeSource([905])
    source.errors[905] = RataRateLimitError("Rate limited", status_code=429)
    poller, store, executor = _poller(source)

    with caplog.at_level(logging.WARNING, logger="pyrata.poller"):
        await poller.poll_once()
        await executor.wait_idle()

    assert "rate limit" in caplog.text
    assert [r.levelno for r in caplog.records if r.name == "pyrata.poller"] == [logging.WARNING]
    assert not store.has(905)
    assert poller.in_flight == frozenset()

    del source.errors[905]
    source.trains[905] = _train(905, "HKI", "TPE")
    await poller.poll_once()
    await executor.wait_idle()

    assert store.get(905) == TrainMetadata(origin="HKI", dest="TPE")
    assert len(source.train_calls) == 2


@pytest.mark.asyncio
async def test_transport_error_is_logged_and_dropped(caplog: pytest.LogCaptureFixture) -> None:
    source = _FakeSource([905])
    source.errors[905] = RataTransportError("HTTP 503", status_code=503)
    poller, store, executor = _poller(source)

    with caplog.at_level(logging.ERROR, logger="pyrata.poller"):
        result = await poller.poll_once()
        await executor.wait_idle()

    assert result[0].origin is None
    assert "Metadata fetch failed for train 905" in caplog.text
    assert not store.has(905)
    assert poller.in_flight == frozenset()


@pytest.mark.asyncio
async def test_missing_timetable_is_stored_as_empty_metadata() -> None:
    source = _FakeSource([77])
    source.trains[77] = None
    poller, store, executor = _poller(source)

    await poller.poll_once()
    await executor.wait_idle()
    result = await poller.poll_once()
    await executor.wait_idle()

    assert store.get(77) == TrainMetadata()
    assert result[0].origin is None
    assert len(source.train_calls) == 1


@pytest.mark.asyncio
async def test_throttled_backfill_respects_quota() -> None:
    source = _FakeSource([1, 2, 3, 4, 5])
    poller, _store, executor = _poller(source, max_per_window=2)

    await poller.poll_once()
    await executor.wait_idle()

    assert [number for number, _day in source.train_calls] == [1, 2]
    assert executor.pending == 3
    # Queued fetches keep their markers, so no duplicates are queued.
    await poller.poll_once()
    assert executor.pending == 3

    executor.reset_window()
    await executor.wait_idle()
    assert [number for number, _day in source.train_calls] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_backlog_overflow_releases_marker() -> None:
    source = _FakeSource([1, 2, 3])
    source.gate = asyncio.Event()
    poller, _store, executor = _poller(source, max_per_window=1, max_backlog=1)

    await poller.poll_once()

    assert executor.pending == 1
    assert poller.in_flight == frozenset({"1-2026-10-19", "3-2026-10-19"})

    source.gate.set()
    await executor.wait_idle()


@pytest.mark.asyncio
async def test_feed_error_propagates_from_poll_once() -> None:
    source = _FakeSource([1])
    source.feed_errors.append(RataTransportError("HTTP 500", status_code=500))
    poller, _store, _executor = _poller(source)

    with pytest.raises(RataTransportError):
        await poller.poll_once()


@pytest.mark.asyncio
async def test_poll_loop_survives_feed_errors_and_notifies() -> None:
    source = _FakeSource([905])
    source.trains[905] = _train(905, "HKI", "TPE")
    source.feed_errors.append(RataTransportError("HTTP 500", status_code=500))
    updates: list[list[EnrichedPosition]] = []
    enriched = asyncio.Event()

    def _on_update(positions: list[EnrichedPosition]) -> None:
        updates.append(positions)
        if positions and positions[0].origin == "HKI":
            enriched.set()

    poller, _store, executor = _poller(source, interval=0.01, on_update=_on_update)
    poller.start()
    try:
        await asyncio.wait_for(enriched.wait(), timeout=2.0)
    finally:
        await poller.stop()
        await executor.wait_idle()

    assert not poller.is_running
    assert updates[0][0].origin is None
    assert poller.latest[0].dest == "TPE"


@pytest.mark.asyncio
async def test_on_update_errors_do_not_break_polling() -> None:
    source = _FakeSource([1])

    def _broken(_positions: list[EnrichedPosition]) -> None:
        raise RuntimeError("consumer bug")

    poller, _store, executor = _poller(source, on_update=_broken)

    result = await poller.poll_once()
    await executor.wait_idle()

    assert [p.train_number for p in result] == [1]


@pytest.mark.asyncio
async def test_updates_yields_each_tick() -> None:
    source = _FakeSource([1, 2])
    poller, _store, executor = _poller(source)

    async def _first_tick() -> list[EnrichedPosition]:
        async for positions in poller.updates():
            return positions
        raise AssertionError("update stream ended")

    next_tick = asyncio.create_task(_first_tick())
    await asyncio.sleep(0)
    await poller.poll_once()
    positions = await asyncio.wait_for(next_tick, timeout=1.0)

    assert [p.train_number for p in positions] == [1, 2]
    await executor.wait_idle()


@pytest.mark.asyncio
async def test_updates_subscribes_before_first_iteration() -> None:
    source = _FakeSource([905])
    poller, _store, executor = _poller(source)

    stream = poller.updates()
    await poller.poll_once()
    positions = await asyncio.wait_for(anext(stream), timeout=1.0)

    assert [p.train_number for p in positions] == [905]
    await executor.wait_idle()


@pytest.mark.asyncio
async def test_slow_consumer_only_sees_latest_tick() -> None:
    source = _FakeSource([1])
    poller, _store, executor = _poller(source)

    stream = poller.updates()
    await poller.poll_once()
    source.numbers = [1, 2]
    await poller.poll_once()
    source.numbers = [1, 2, 3]
    await poller.poll_once()

    positions = await asyncio.wait_for(anext(stream), timeout=1.0)
    assert [p.train_number for p in positions] == [1, 2, 3]

    pending = asyncio.ensure_future(anext(stream))
    await asyncio.sleep(0.01)
    assert not pending.done()
    pending.cancel()
    await executor.wait_idle()


@pytest.mark.asyncio
async def test_poll_loop_keeps_fixed_cadence() -> None:
    loop = asyncio.get_running_loop()
    starts: list[float] = []

    class _SlowSource(_FakeSource):
        async def get_latest_locations(self) -> list[TrainLocation]:
            starts.append(loop.time())
            await asyncio.sleep(0.06)
            return []

    poller, _store, _executor = _poller(_SlowSource([]), interval=0.1)
    poller.start()
    try:
        for _ in range(200):
            if len(starts) >= 4:
                break
            await asyncio.sleep(0.01)
    finally:
        await poller.stop()

    gaps = [b - a for a, b in zip(starts, starts[1:])]
    # Sleeping a full interval after each poll would space ticks ~0.16s apart.
    assert sum(gaps) / len(gaps) < 0.13


@pytest.mark.asyncio
async def test_poll_survives_failing_durable_layer() -> None:
    class _LockedStorage:
        def get_item(self, key: str) -> str | None:
            raise RuntimeError("database is locked")

        def set_item(self, key: str, value: str) -> None:
            raise RuntimeError("database is locked")

    source = _FakeSource([905])
    source.trains[905] = _train(905, "HKI", "TPE")
    store = MetadataStore(_LockedStorage(), today=lambda: TODAY)
    executor = ThrottledExecutor(max_per_window=50, window=60.0)
    poller = PositionPoller(source, store, executor)

    await poller.poll_once()
    await executor.wait_idle()
    result = await poller.poll_once()

    assert result[0].origin == "HKI"
    assert result[0].dest == "TPE"
