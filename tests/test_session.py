"""Tests for meter.session -- the measurement state machine.

Transfers and probes are replaced with ``AsyncMock`` so these tests never
touch the network.
"""

import asyncio
import unittest
from unittest import mock

from meter.errors import OperationTimeoutError, ProbeStatusError, TransferStatusError
from meter.session import MeasurementSession, Progress, SessionState, Snapshot
from meter.stats import TransferResult
from meter.target import Target

PINGS = [10, 12, 11, 13, 10, 11, 12, 11]


def _session(pings=None, downloads=None, uploads=None, **kwargs):
    updates = []
    session = MeasurementSession(
        Target.from_url("http://127.0.0.1:9"),
        ping_count=8,
        connections=4,
        on_update=updates.append,
        **kwargs,
    )
    session.latency.probe_once = mock.AsyncMock(side_effect=list(pings or PINGS))
    session.download.once = mock.AsyncMock(
        side_effect=list(downloads or [TransferResult(1_250_000, 1000.0)] * 4)
    )
    session.upload.once = mock.AsyncMock(
        side_effect=list(uploads or [TransferResult(625_000, 1000.0)] * 4)
    )
    return session, updates


class TestProgress(unittest.TestCase):
    def test_percent(self):
        p = Progress(4)
        p.step()
        self.assertEqual(p.percent, 25.0)

    def test_capped(self):
        p = Progress(1)
        p.step()
        p.step()
        self.assertEqual(p.percent, 100.0)

    def test_finish_forces_hundred(self):
        p = Progress(3)
        p.step()
        p.finish()
        self.assertEqual(p.percent, 100.0)

    def test_reset(self):
        p = Progress(2)
        p.step()
        p.finish()
        p.reset(5)
        self.assertEqual(p.percent, 0.0)
        self.assertEqual(p.total_steps, 5)


class TestSnapshot(unittest.TestCase):
    def test_placeholders(self):
        d = Snapshot().to_dict()
        self.assertEqual(d["state"], "idle")
        self.assertIsNone(d["download_mbps"])
        self.assertIsNone(d["ping"])


class TestSessionArguments(unittest.TestCase):
    def _make(self, **kwargs):
        return MeasurementSession(Target.from_url("http://127.0.0.1:9"), **kwargs)

    def test_no_pings_rejected(self):
        with self.assertRaises(ValueError):
            self._make(ping_count=0)

    def test_no_connections_rejected(self):
        with self.assertRaises(ValueError):
            self._make(connections=0)

    def test_negative_sizes_rejected(self):
        with self.assertRaises(ValueError):
            self._make(download_bytes=-1)
        with self.assertRaises(ValueError):
            self._make(upload_bytes=-1)

    def test_minimal_values_accepted(self):
        session = self._make(ping_count=1, connections=1, download_bytes=0, upload_bytes=0)
        self.assertIs(session.state, SessionState.IDLE)


class TestSessionRun(unittest.IsolatedAsyncioTestCase):
    async def test_full_run(self):
        session, _ = _session()
        snap = await session.start()

        self.assertIs(snap.state, SessionState.COMPLETED)
        self.assertEqual(snap.progress_percent, 100.0)
        self.assertAlmostEqual(snap.average_latency_ms, 11.25)
        self.assertAlmostEqual(snap.jitter_ms, 0.968, places=3)
        # 4 x 1.25 MB in 1 s = 40 Mbps; 4 x 0.625 MB in 1 s = 20 Mbps
        self.assertAlmostEqual(snap.download_mbps, 40.0)
        self.assertAlmostEqual(snap.upload_mbps, 20.0)
        self.assertEqual(snap.status, "Done")
        self.assertEqual(session.latency.probe_once.await_count, 8)
        self.assertEqual(session.download.once.await_count, 4)
        self.assertEqual(session.upload.once.await_count, 4)

    async def test_states_visited_in_order(self):
        session, updates = _session()
        await session.start()
        states = []
        for snap in updates:
            if not states or states[-1] is not snap.state:
                states.append(snap.state)
        self.assertEqual(states, [
            SessionState.MEASURING_LATENCY,
            SessionState.MEASURING_DOWNLOAD,
            SessionState.MEASURING_UPLOAD,
            SessionState.COMPLETED,
        ])

    async def test_progress_monotonic(self):
        session, updates = _session()
        await session.start()
        percents = [u.progress_percent for u in updates]
        self.assertEqual(percents, sorted(percents))
        self.assertEqual(percents[0], 0.0)
        self.assertEqual(percents[-1], 100.0)
        self.assertEqual(session.progress.completed, 8 + 4 + 4)

    async def test_results_appear_at_phase_boundaries(self):
        session, updates = _session()
        await session.start()
        first_download = next(u for u in updates if u.state is SessionState.MEASURING_DOWNLOAD)
        self.assertIsNotNone(first_download.average_latency_ms)
        self.assertIsNone(first_download.download_mbps)

    async def test_zero_duration_is_not_infinite(self):
        session, _ = _session(downloads=[TransferResult(1000, 0.0)] * 4)
        snap = await session.start()
        self.assertIs(snap.state, SessionState.COMPLETED)
        self.assertIsNone(snap.download_mbps)
        self.assertIsNotNone(snap.upload_mbps)


class TestSessionFailures(unittest.IsolatedAsyncioTestCase):
    async def test_download_timeout_fails_session(self):
        ok = TransferResult(1_250_000, 1000.0)
        session, _ = _session(downloads=[ok, OperationTimeoutError("timed out after 60000 ms"), ok, ok])
        snap = await session.start()

        self.assertIs(snap.state, SessionState.FAILED)
        self.assertIsNone(snap.download_mbps)
        self.assertIsNone(snap.upload_mbps)
        self.assertIn("timed out", snap.status)
        self.assertTrue(snap.status.startswith("Error:"))
        self.assertIsInstance(session.error, OperationTimeoutError)
        session.upload.once.assert_not_awaited()

    async def test_probe_failure(self):
        session, _ = _session(pings=[10, ProbeStatusError("ping failed: HTTP 500", 500)])
        snap = await session.start()
        self.assertIs(snap.state, SessionState.FAILED)
        self.assertIsNone(snap.average_latency_ms)
        self.assertIn("HTTP 500", snap.status)
        session.download.once.assert_not_awaited()

    async def test_upload_failure_keeps_earlier_results(self):
        ok = TransferResult(625_000, 1000.0)
        session, _ = _session(uploads=[ok, ok, TransferStatusError("upload failed: HTTP 500", 500), ok])
        snap = await session.start()
        self.assertIs(snap.state, SessionState.FAILED)
        self.assertIsNotNone(snap.download_mbps)
        self.assertIsNone(snap.upload_mbps)

    async def test_unexpected_error_fails_session(self):
        session, _ = _session()
        session.download.once = mock.AsyncMock(side_effect=RuntimeError("unexpected"))
        with self.assertLogs("meter.session", level="ERROR"):
            snap = await session.start()

        self.assertIs(snap.state, SessionState.FAILED)
        self.assertFalse(session.is_running)
        self.assertEqual(snap.status, "Error: unexpected")
        self.assertIsInstance(session.error, RuntimeError)
        session.upload.once.assert_not_awaited()

        # Not stuck: a second start runs again
        session.latency.probe_once = mock.AsyncMock(side_effect=PINGS)
        session.download.once = mock.AsyncMock(
            side_effect=[TransferResult(1_250_000, 1000.0)] * 4
        )
        snap = await session.start()
        self.assertIs(snap.state, SessionState.COMPLETED)
        self.assertEqual(session.download.once.await_count, 4)

    async def test_failing_update_callback_fails_session(self):
        def explode(snapshot):
            if snapshot.state is SessionState.MEASURING_UPLOAD:
                raise RuntimeError("display broke")

        session, _ = _session()
        session.on_update = explode
        with self.assertLogs("meter.session", level="ERROR"):
            snap = await session.start()
        self.assertIs(snap.state, SessionState.FAILED)
        self.assertIn("display broke", snap.status)

    async def test_restart_after_failure_clears_results(self):
        session, _ = _session(pings=[ProbeStatusError("ping failed: HTTP 500", 500)])
        await session.start()
        self.assertIs(session.state, SessionState.FAILED)

        session.latency.probe_once = mock.AsyncMock(side_effect=PINGS)
        snap = await session.start()
        self.assertIs(snap.state, SessionState.COMPLETED)
        self.assertIsNone(session.error)


class TestSessionConcurrency(unittest.IsolatedAsyncioTestCase):
    async def test_start_while_running_is_noop(self):
        gate = asyncio.Event()

        async def gated_probe(_http):
            await gate.wait()
            return 10.0

        session, _ = _session()
        session.latency.probe_once = mock.AsyncMock(side_effect=gated_probe)

        first = asyncio.ensure_future(session.start())
        await asyncio.sleep(0.01)
        self.assertIs(session.state, SessionState.MEASURING_LATENCY)
        before = session.progress.completed

        snap = await session.start()
        self.assertIs(snap.state, SessionState.MEASURING_LATENCY)
        self.assertIs(session.state, SessionState.MEASURING_LATENCY)
        self.assertEqual(session.progress.completed, before)
        self.assertEqual(session.latency.probe_once.await_count, 1)

        gate.set()
        final = await first
        self.assertIs(final.state, SessionState.COMPLETED)
        self.assertEqual(session.latency.probe_once.await_count, 8)

    async def test_abort(self):
        async def hang(_http):
            await asyncio.sleep(60)

        session, _ = _session()
        session.latency.probe_once = mock.AsyncMock(side_effect=hang)

        run = asyncio.ensure_future(session.start())
        await asyncio.sleep(0.01)
        self.assertTrue(session.abort())

        snap = await run
        self.assertIs(snap.state, SessionState.FAILED)
        self.assertIn("aborted", snap.status)

    async def test_abort_when_idle(self):
        session, _ = _session()
        self.assertFalse(session.abort())

    async def test_host_cancellation_propagates(self):
        async def hang(_http):
            await asyncio.sleep(60)

        session, _ = _session()
        session.download.once = mock.AsyncMock(side_effect=hang)

        run = asyncio.ensure_future(session.start())
        await asyncio.sleep(0.01)
        run.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await run
        self.assertIs(session.state, SessionState.FAILED)


if __name__ == "__main__":
    unittest.main()
