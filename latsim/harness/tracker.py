"""
tracker.py - M4 Simulation Tracker

Owns simulated time, playback speed and the packets in flight, and resolves
every packet's phase against the journey timeline of the path.

DESIGN PHILOSOPHY:
- Driven externally: no timer or frame loop, callers step with advance()
  or seek with set_time()
- Deterministic: the packet arena is a pure function of (path, send policy,
  manual sends, current time), so seeking to t and stepping to t agree
- One time per tick: all packets are resolved against the same instant
- Events are returned, not pushed: every call reports what happened since
  the previous call, ending with a Tick carrying the snapshot

Send policies:
    single   - one packet at t=0
    interval - one packet at every multiple of `interval`
    burst    - `burst_size` packets at every multiple of `interval`
    manual   - only packets requested through manual_send()

Packet ids are fixed by the schedule, not by arrival order: scheduled spawn
number n (counting from 1, bursts in order) has id n, and manual send
number m has id (scheduled spawns in the window) + m. Spawns skipped at the
packet limit keep their id unused.
"""

import bisect
import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

from latsim.config.engine import EngineConfig, DEFAULT_CONFIG
from latsim.harness.events import (
    Complete,
    PacketDelivered,
    PacketLimitExceeded,
    PacketSent,
    PacketState,
    SimulationEvent,
    Snapshot,
    Tick,
)
from latsim.journey.planner import build_segments, journey_duration
from latsim.journey.resolver import Phase, ResolvedPhase, resolve
from latsim.metrics.tracker_metrics import TrackerMetrics
from latsim.network.path import Path

logger = logging.getLogger(__name__)

SEND_MODES = ("single", "interval", "burst", "manual")

# Scheduled times are k * interval; anything within this fraction of an
# interval past a bound still counts as due
_SCHEDULE_EPSILON = 1e-9

# Schedule ordering: scheduled spawns come before manual ones at the same instant
_SCHEDULED = 0
_MANUAL = 1

ScheduleKey = Tuple[float, int, int]


@dataclass
class _PacketRecord:
    """Arena entry for one tracked packet."""
    id: int
    send_time: float
    color: str
    resolved: ResolvedPhase

    def state(self) -> PacketState:
        return PacketState(
            id=self.id,
            phase=self.resolved.phase,
            hop_index=self.resolved.hop_index,
            progress=self.resolved.progress,
            send_time=self.send_time,
            color=self.color,
            leading_edge=self.resolved.leading_edge,
            trailing_edge=self.resolved.trailing_edge,
            trailing_edge_started=self.resolved.trailing_edge_started,
        )


def _check_send_mode(mode: str, interval: float, burst_size: int):
    if mode not in SEND_MODES:
        raise ValueError(f"send mode must be one of {SEND_MODES}, got '{mode}'")
    if not interval > 0:
        raise ValueError(f"interval must be positive, got {interval}")
    if int(burst_size) != burst_size or burst_size < 1:
        raise ValueError(f"burst_size must be a positive integer, got {burst_size}")


def _prefix_length(times: List[float], end: int, holds: Callable[[float], bool]) -> int:
    """Length of the leading run of times[:end] for which `holds` is true."""
    lo, hi = 0, end
    while lo < hi:
        mid = (lo + hi) // 2
        if holds(times[mid]):
            lo = mid + 1
        else:
            hi = mid
    return lo


class _SpawnPlan:
    """
    Spawn schedule replayed against the packet limit, extended on demand.

    A spawn's fate only depends on the spawns before it, so the plan at any
    time up to `frontier` is a prefix of what has been replayed. Moving
    forward replays only the new spawns; moving backward replays nothing.

    Spawns are ordered by key time. A scheduled spawn's key is its send
    time; a manual spawn's key is its send time plus the tolerance, so it
    follows every spawn already due when it was requested.
    """

    def __init__(self,
                 send_mode: str,
                 interval: float,
                 burst_size: int,
                 max_time: float,
                 journey_time: float,
                 config: EngineConfig,
                 manual_sends: List[Tuple[float, int]]):
        self.send_mode = send_mode
        self.interval = interval
        self.per_tick = burst_size if send_mode == "burst" else 1
        self.journey_time = journey_time
        self.config = config
        self.tolerance = interval * _SCHEDULE_EPSILON
        self.manual_sends = manual_sends  # sorted (send_time, seq), shared with the tracker

        self.scheduled_count = self._scheduled_count(max_time)

        # Accepted spawns in replay order (key times never decrease)
        self.ids: List[int] = []
        self.keys: List[float] = []
        self.times: List[float] = []
        self.peaks: List[int] = []

        # Skipped spawns in replay order
        self.skipped_keys: List[float] = []
        self.skipped_times: List[float] = []
        self.skipped_active: List[int] = []

        self.frontier = -math.inf
        self._next_slot = 0
        self._next_manual = 0
        self._last_key: Optional[ScheduleKey] = None
        self._live: Deque[float] = deque()

    def _due(self, key_time: float, upto: float) -> bool:
        return key_time <= upto + self.tolerance

    def _scheduled_count(self, max_time: float) -> int:
        if self.send_mode == "single":
            return 1
        if self.send_mode == "manual":
            return 0
        ticks = int(math.floor(max_time / self.interval))
        while self._due((ticks + 1) * self.interval, max_time):
            ticks += 1
        while ticks > 0 and not self._due(ticks * self.interval, max_time):
            ticks -= 1
        return (ticks + 1) * self.per_tick

    def _manual_key(self, send_time: float, seq: int) -> ScheduleKey:
        return (send_time + self.tolerance, _MANUAL, seq)

    def _next_entry(self) -> Optional[Tuple[ScheduleKey, int, float]]:
        """Next spawn in schedule order as (sort key, packet id, send time)."""
        scheduled = None
        if self._next_slot < self.scheduled_count:
            send_time = (self._next_slot // self.per_tick) * self.interval
            scheduled = ((send_time, _SCHEDULED, self._next_slot), self._next_slot + 1, send_time)

        manual = None
        if self._next_manual < len(self.manual_sends):
            send_time, seq = self.manual_sends[self._next_manual]
            manual = (self._manual_key(send_time, seq), self.scheduled_count + seq + 1, send_time)

        if scheduled is None or (manual is not None and manual[0] < scheduled[0]):
            return manual
        return scheduled

    def extend(self, upto: float):
        """Replay every spawn due at or before `upto`."""
        if upto < self.frontier:
            return

        while True:
            entry = self._next_entry()
            if entry is None or not self._due(entry[0][0], upto):
                break
            key, packet_id, send_time = entry
            if key[1] == _SCHEDULED:
                self._next_slot += 1
            else:
                self._next_manual += 1
            self._decide(packet_id, key[0], send_time)
            self._last_key = key

        self.frontier = upto

    def _expired(self, key_time: float, at: float) -> bool:
        return at - (key_time + self.journey_time) > self.config.delivered_grace_ms

    def _decide(self, packet_id: int, key_time: float, send_time: float):
        # Live key times never decrease, so expired packets sit at the front
        while self._live and self._expired(self._live[0], key_time):
            self._live.popleft()

        if len(self._live) >= self.config.max_packets:
            self.skipped_keys.append(key_time)
            self.skipped_times.append(send_time)
            self.skipped_active.append(len(self._live))
            return

        self._live.append(key_time)
        self.ids.append(packet_id)
        self.keys.append(key_time)
        self.times.append(send_time)
        self.peaks.append(max(self.peaks[-1] if self.peaks else 0, len(self._live)))

    def accept_manual(self, send_time: float, seq: int) -> bool:
        """
        Prepare to replay a manual send requested at `send_time`.

        Returns False when spawns after it were already replayed (it was
        requested after seeking back); the plan must then be rebuilt.
        """
        key = self._manual_key(send_time, seq)
        if self._last_key is not None and key < self._last_key:
            return False
        self.frontier = min(self.frontier, send_time)
        return True

    # Queries below assume extend(now) has been called

    def sent_count(self, now: float) -> int:
        return bisect.bisect_right(self.keys, now + self.tolerance)

    def skipped_count(self, now: float) -> int:
        return bisect.bisect_right(self.skipped_keys, now + self.tolerance)

    def delivered_count(self, now: float, sent: int) -> int:
        return _prefix_length(self.keys, sent, lambda k: now - k >= self.journey_time)

    def expired_count(self, now: float, delivered: int) -> int:
        return _prefix_length(self.keys, delivered, lambda k: self._expired(k, now))

    def peak(self, sent: int) -> int:
        return self.peaks[sent - 1] if sent else 0


class SimulationTracker:
    """
    Seekable, speed-controllable simulation of packets crossing a path.

    Usage:
        tracker = SimulationTracker(path, send_mode="interval", interval=10)
        tracker.play()
        for _ in range(frames):
            for event in tracker.advance(16.0):
                handle(event)
        tracker.snapshot().packets

    Attributes:
        path: Path being simulated (read-only)
        config: Engine configuration
        current_time: Simulated time (ms)
        max_time: Upper bound of the simulation window (ms)
        playback_speed: Simulated ms per ms passed to advance()
        send_mode: Active send policy
        interval: Spawn interval for interval and burst modes (ms)
        burst_size: Packets per burst
    """

    def __init__(self,
                 path: Path,
                 send_mode: str = "single",
                 interval: float = 10.0,
                 burst_size: int = 3,
                 max_time: Optional[float] = None,
                 config: EngineConfig = DEFAULT_CONFIG):
        """
        Initialize the tracker at t=0.

        Args:
            path: Path to simulate
            send_mode: One of "single", "interval", "burst", "manual"
            interval: Spawn interval in ms
            burst_size: Packets per burst
            max_time: Window length in ms (default derived from the journey time)
            config: Engine configuration

        Raises:
            InvalidPathError: If the path is structurally invalid
            ValueError: If the send mode parameters are invalid
        """
        _check_send_mode(send_mode, interval, burst_size)

        self.config = config
        self.send_mode = send_mode
        self.interval = float(interval)
        self.burst_size = int(burst_size)
        self.playback_speed = self._clamp_speed(config.playback_speed)
        self.playing = False
        self.metrics = TrackerMetrics()

        self._requested_max_time = max_time
        self._manual_sends: List[Tuple[float, int]] = []

        self.current_time = 0.0
        self._packets: Dict[int, _PacketRecord] = {}
        self._reported_sent = 0
        self._reported_delivered = 0
        self._reported_skips = 0
        self._snapshot = Snapshot(time=0.0)

        self._load_path(path)
        self._plan = self._new_plan()
        # Resolve t=0 so snapshot() works before the first call; the t=0
        # spawns are still reported by the first call.
        self._refresh(report=False)

    # ------------------------------------------------------------------
    # Path and window

    def _load_path(self, path: Path):
        self.segments = build_segments(path, self.config)
        self.path = path
        self.journey_time = journey_duration(self.segments)
        self.max_time = self._window_for(self.journey_time)
        logger.debug(f"Loaded path '{path.name}': journey {self.journey_time:.6f} ms, "
                     f"window {self.max_time:.6f} ms")

    def _window_for(self, journey_time: float) -> float:
        if self._requested_max_time is not None:
            return max(float(self._requested_max_time), 0.0)
        if self.send_mode == "single":
            return journey_time
        return min(journey_time * self.config.multi_packet_window_factor,
                   self.config.multi_packet_window_cap_ms)

    def _new_plan(self) -> _SpawnPlan:
        return _SpawnPlan(
            send_mode=self.send_mode,
            interval=self.interval,
            burst_size=self.burst_size,
            max_time=self.max_time,
            journey_time=self.journey_time,
            config=self.config,
            manual_sends=self._manual_sends,
        )

    def set_path(self, path: Path) -> List[SimulationEvent]:
        """
        Replace the simulated path and restart from t=0.

        Raises:
            InvalidPathError: If the path is structurally invalid (tracker unchanged)
        """
        self._load_path(path)
        logger.info(f"Path changed to '{path.name}' ({len(path.hops)} hops)")
        return self.reset()

    # ------------------------------------------------------------------
    # Playback controls

    @property
    def is_playing(self) -> bool:
        return self.playing

    @property
    def at_end(self) -> bool:
        return self.current_time >= self.max_time

    def play(self):
        """Start or resume auto-advance (idempotent)."""
        self.playing = True

    def pause(self):
        """Stop auto-advance (idempotent)."""
        self.playing = False

    def _clamp_speed(self, speed: float) -> float:
        if math.isnan(speed):
            return self.config.playback_speed
        return min(max(speed, self.config.min_playback_speed), self.config.max_playback_speed)

    def set_playback_speed(self, speed: float):
        """Set simulated ms per ms of advance(), clamped to the configured bounds."""
        self.playback_speed = self._clamp_speed(float(speed))

    def advance(self, delta_ms: float) -> List[SimulationEvent]:
        """
        Advance simulated time by `delta_ms` x playback speed while playing.

        Reaching the end of the window pauses playback. When paused, time
        does not move and only a Tick is reported.

        Args:
            delta_ms: Elapsed host time since the previous frame (ms)

        Returns:
            Events emitted since the previous call
        """
        if not self.playing:
            return self._refresh()

        step = 0.0 if math.isnan(delta_ms) else delta_ms * self.playback_speed
        events = self._move_to(self.current_time + step)

        if self.at_end:
            self.pause()
        return events

    def set_time(self, time_ms: float) -> List[SimulationEvent]:
        """
        Seek to `time_ms`, clamped into the simulation window.

        NaN and negative values (transient slider output) clamp to 0.

        Returns:
            Events emitted since the previous call
        """
        return self._move_to(time_ms)

    def reset(self) -> List[SimulationEvent]:
        """Return to t=0, drop every packet and manual send, and pause."""
        self.pause()
        self.current_time = 0.0
        self._manual_sends = []
        self._plan = self._new_plan()
        self._packets = {}
        self._reported_sent = 0
        self._reported_delivered = 0
        self._reported_skips = 0
        logger.info(f"Simulation reset (mode={self.send_mode}, window={self.max_time:.6f} ms)")
        return self._refresh()

    def set_send_mode(self, mode: str, interval: float = 10.0, burst_size: int = 3) -> List[SimulationEvent]:
        """
        Switch send policy and restart from t=0.

        Raises:
            ValueError: If the mode is unknown or interval/burst_size are not positive
        """
        _check_send_mode(mode, interval, burst_size)

        self.send_mode = mode
        self.interval = float(interval)
        self.burst_size = int(burst_size)
        self.max_time = self._window_for(self.journey_time)
        logger.info(f"Send mode set to {mode} (interval={self.interval} ms, burst={self.burst_size})")
        return self.reset()

    def manual_send(self) -> List[SimulationEvent]:
        """
        Inject one packet at the current time, whatever the send mode.

        Returns:
            Events emitted since the previous call: PacketSent, or
            PacketLimitExceeded if too many packets are in flight
        """
        seq = len(self._manual_sends)
        in_order = self._plan.accept_manual(self.current_time, seq)

        bisect.insort(self._manual_sends, (self.current_time, seq))
        if not in_order:
            # Sent after seeking back: later spawns may change fate, ids do not
            logger.debug(f"Manual send at t={self.current_time:.6f} ms precedes replayed spawns, replanning")
            self._plan = self._new_plan()

        return self._refresh()

    # ------------------------------------------------------------------
    # Queries

    def snapshot(self) -> Snapshot:
        """Snapshot at the current time."""
        return self._snapshot

    def packet(self, packet_id: int) -> PacketState:
        """Current state of a tracked packet (KeyError once pruned)."""
        return self._packets[packet_id].state()

    @property
    def active_packet_count(self) -> int:
        return len(self._packets)

    def get_metrics(self) -> TrackerMetrics:
        """Packet statistics up to the current time."""
        return self.metrics

    # ------------------------------------------------------------------
    # Resolution

    def _move_to(self, time_ms: float) -> List[SimulationEvent]:
        time_ms = float(time_ms)
        if math.isnan(time_ms):
            time_ms = 0.0
        self.current_time = min(max(time_ms, 0.0), self.max_time)
        return self._refresh()

    def _record(self, packet_id: int, send_time: float) -> _PacketRecord:
        # A spawn due within the schedule tolerance counts as just sent
        elapsed = max(self.current_time - send_time, 0.0)
        return _PacketRecord(
            id=packet_id,
            send_time=send_time,
            color=self.config.color_for(packet_id),
            resolved=resolve(self.segments, elapsed),
        )

    def _refresh(self, report: bool = True) -> List[SimulationEvent]:
        """
        Rebuild the arena at the current time and report what changed.

        Sent, delivered and skipped spawns each form a prefix of the replayed
        schedule, so a forward move reports the part of each prefix not yet
        reported and a backward move reports nothing.
        """
        now = self.current_time
        plan = self._plan
        plan.extend(now)

        sent = plan.sent_count(now)
        delivered = plan.delivered_count(now, sent)
        skipped = plan.skipped_count(now)
        first_live = plan.expired_count(now, delivered)

        self._packets = {
            plan.ids[i]: self._record(plan.ids[i], plan.times[i])
            for i in range(first_live, sent)
        }

        self.metrics = TrackerMetrics(
            time_ms=now,
            packets_sent=sent,
            packets_delivered=delivered,
            packets_limited=skipped,
            packets_in_flight=sent - delivered,
            packets_tracked=len(self._packets),
            peak_tracked_packets=plan.peak(sent),
            journey_time_ms=self.journey_time,
        )

        events: List[SimulationEvent] = []
        if report:
            events = self._changes(plan, sent, delivered, skipped)
            self._reported_sent = sent
            self._reported_delivered = delivered
            self._reported_skips = skipped

        self._snapshot = self._build_snapshot()
        events.append(Tick(self._snapshot))
        return events

    def _changes(self, plan: _SpawnPlan, sent: int, delivered: int, skipped: int) -> List[SimulationEvent]:
        """Events for the prefix growth since the last report, in logical time order."""
        timed: List[Tuple[float, int, SimulationEvent]] = []

        for i in range(self._reported_sent, sent):
            timed.append((plan.times[i], 0, PacketSent(self._state_of(plan.ids[i], plan.times[i]))))

        for i in range(self._reported_skips, skipped):
            send_time = plan.skipped_times[i]
            logger.warning(f"Maximum packet limit ({self.config.max_packets}) exceeded at "
                           f"t={send_time:.6f} ms, spawn skipped")
            timed.append((send_time, 0, PacketLimitExceeded(
                send_time=send_time,
                active_packets=plan.skipped_active[i],
                max_packets=self.config.max_packets,
            )))

        complete_at = None
        for i in range(self._reported_delivered, delivered):
            packet_id, send_time = plan.ids[i], plan.times[i]
            arrival = send_time + self.journey_time
            timed.append((arrival, 1, PacketDelivered(
                packet=self._state_of(packet_id, send_time),
                latency_ms=self.journey_time,
            )))
            if self.send_mode == "single" and packet_id == 1:
                complete_at = arrival

        timed.sort(key=lambda item: (item[0], item[1]))
        events: List[SimulationEvent] = [event for _, _, event in timed]

        if complete_at is not None:
            events.append(Complete(time=complete_at))
        return events

    def _state_of(self, packet_id: int, send_time: float) -> PacketState:
        """State of a logically sent packet, even if already pruned."""
        record = self._packets.get(packet_id)
        if record is None:
            record = self._record(packet_id, send_time)
        return record.state()

    def _build_snapshot(self) -> Snapshot:
        depths = [0] * len(self.path.hops)
        states = []
        for packet_id in sorted(self._packets):
            state = self._packets[packet_id].state()
            if state.phase is Phase.QUEUING:
                depths[state.hop_index] += 1
            states.append(state)

        return Snapshot(time=self.current_time, packets=tuple(states), queue_depths=tuple(depths))
