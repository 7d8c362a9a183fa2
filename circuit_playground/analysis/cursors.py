"""Measurement cursors on probe histories."""

from dataclasses import dataclass, field

# Time differences below this are treated as zero
MIN_DELTA_TIME = 1e-12


@dataclass
class MeasurementCursor:
    active: bool = False
    time: float = 0.0
    value: float = 0.0
    channel: int = 0


@dataclass
class CursorPair:
    """Two cursors; every delta reads 0 unless both are active."""

    cursor1: MeasurementCursor = field(default_factory=MeasurementCursor)
    cursor2: MeasurementCursor = field(default_factory=MeasurementCursor)

    def place_cursor(self, which: int, history, time: float, channel: int = 0) -> MeasurementCursor:
        """Activate cursor 1 or 2 at ``time``, reading the value from ``history``.

        Args:
            which: 1 or 2
            history: ``ProbeHistory`` of the channel (value interpolated)
            time: Cursor time in seconds
            channel: Probe index shown by the cursor
        """
        if which not in (1, 2):
            raise ValueError(f"Cursor must be 1 or 2, got {which}")
        cursor = self.cursor1 if which == 1 else self.cursor2
        cursor.active = True
        cursor.time = time
        cursor.channel = channel
        cursor.value = history.value_at(time)
        return cursor

    def clear(self) -> None:
        self.cursor1 = MeasurementCursor()
        self.cursor2 = MeasurementCursor()

    @property
    def both_active(self) -> bool:
        return self.cursor1.active and self.cursor2.active

    def delta_time(self) -> float:
        if not self.both_active:
            return 0.0
        return self.cursor2.time - self.cursor1.time

    def delta_value(self) -> float:
        if not self.both_active:
            return 0.0
        return self.cursor2.value - self.cursor1.value

    def frequency(self) -> float:
        """1 / |dt|, 0 when the cursors are (nearly) coincident."""
        dt = self.delta_time()
        if abs(dt) < MIN_DELTA_TIME:
            return 0.0
        return 1.0 / abs(dt)

    def slew_rate(self) -> float:
        """dV / dt in V/s."""
        dt = self.delta_time()
        if abs(dt) < MIN_DELTA_TIME:
            return 0.0
        return self.delta_value() / dt
