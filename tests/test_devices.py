from __future__ import annotations

import asyncio

import pytest

from ergdrive.core.samples import GearState
from ergdrive.devices.simulated import (
    SimulatedDi2,
    SimulatedHeartRateMonitor,
    SimulatedPowerMeter,
    heart_rate_zone,
)


def test_di2_requires_connection_and_valid_gear() -> None:
    async def _run() -> None:
        di2 = SimulatedDi2(shift_delay_sec=0)
        with pytest.raises(RuntimeError):
            await di2.shift_to(GearState(front=1, rear=5))

        assert await di2.connect() is True
        with pytest.raises(ValueError):
            await di2.shift_to(GearState(front=3, rear=5))
        await di2.shift_to(GearState(front=1, rear=5))

        assert di2.shift_log == [GearState(front=1, rear=5)]
        await di2.disconnect()
        assert not di2.connected

    asyncio.run(_run())


def test_failed_connect_reports_false() -> None:
    async def _run() -> None:
        monitor = SimulatedHeartRateMonitor(fail_connect=True)
        assert await monitor.connect() is False
        assert monitor.current_bpm == 0
        assert monitor.respond_to_effort(200, 200) == 0

    asyncio.run(_run())


def test_heart_rate_drifts_toward_zone() -> None:
    async def _run() -> None:
        monitor = SimulatedHeartRateMonitor(resting_bpm=65)
        await monitor.connect()

        assert monitor.respond_to_effort(300, 300) == 68
        for _ in range(60):
            bpm = monitor.respond_to_effort(300, 300)
        assert bpm == 170

        for _ in range(5):
            bpm = monitor.respond_to_effort(300, 100)
            assert 50 <= bpm <= 200

    asyncio.run(_run())


def test_power_meter_reads_around_target() -> None:
    async def _run() -> None:
        meter = SimulatedPowerMeter(seed=7)
        assert meter.read(200) == {}

        await meter.connect()
        for _ in range(20):
            reading = meter.read(200)
            assert 170 <= reading["power_watts"] <= 230
            assert 75.0 <= reading["cadence_rpm"] <= 95.0
            assert reading["speed_kmh"] == round(25 + (reading["power_watts"] - 200) / 10, 1)

    asyncio.run(_run())


def test_power_meter_is_reproducible_with_seed() -> None:
    async def _run() -> None:
        first = SimulatedPowerMeter(seed=11)
        second = SimulatedPowerMeter(seed=11)
        await first.connect()
        await second.connect()

        assert [first.read(250) for _ in range(5)] == [second.read(250) for _ in range(5)]

    asyncio.run(_run())


def test_heart_rate_zone() -> None:
    assert heart_rate_zone(100).zone == 1
    assert heart_rate_zone(120).name == "Aerobic Base"
    assert heart_rate_zone(150).zone == 3
    assert heart_rate_zone(160).zone == 4
    assert heart_rate_zone(180).name == "VO2 Max"
