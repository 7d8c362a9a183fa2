"""Math channels computed from probe values sample by sample.

Each channel combines one or two probe channels with a unary or binary
operation, then applies ``scale`` and ``offset``. DERIVATIVE and INTEGRAL
use the time step between successive updates; INTEGRAL keeps a running
accumulator that only ``reset`` clears.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from circuit_playground.config import MAX_PROBES

# Denominator magnitude below which A / B reads as 0
DIVIDE_EPSILON = 1e-15
LOG_FLOOR = 1e-15


class MathOperation(Enum):
    NONE = "none"
    ADD = "add"  # A + B
    SUBTRACT = "subtract"  # A - B
    MULTIPLY = "multiply"  # A * B
    DIVIDE = "divide"  # A / B
    DERIVATIVE = "derivative"  # dA/dt
    INTEGRAL = "integral"  # integral of A dt
    ABS = "abs"  # |A|
    INVERT = "invert"  # -A
    LOG = "log"  # log10(|A|)
    SQRT = "sqrt"  # sqrt(|A|)


BINARY_OPERATIONS = frozenset(
    {MathOperation.ADD, MathOperation.SUBTRACT, MathOperation.MULTIPLY, MathOperation.DIVIDE}
)


@dataclass
class MathChannel:
    """One math channel

    Attributes:
        enabled: Channel is evaluated by ``update_all``
        operation: Operation applied to the sources
        source_a: Probe index of operand A
        source_b: Probe index of operand B (binary operations)
        scale: Output scale factor
        offset: Output offset
        integral_value: Running integral accumulator
        value: Last computed output
    """

    enabled: bool = False
    operation: MathOperation = MathOperation.NONE
    source_a: int = 0
    source_b: int = 1
    scale: float = 1.0
    offset: float = 0.0
    integral_value: float = 0.0
    value: float = 0.0
    _prev_a: Optional[float] = None

    def compute(self, a: float, b: float = 0.0, dt: float = 0.0) -> float:
        """Evaluate the operation on operands A and B and update the channel."""
        op = self.operation
        if op == MathOperation.ADD:
            result = a + b
        elif op == MathOperation.SUBTRACT:
            result = a - b
        elif op == MathOperation.MULTIPLY:
            result = a * b
        elif op == MathOperation.DIVIDE:
            result = a / b if abs(b) >= DIVIDE_EPSILON else 0.0
        elif op == MathOperation.DERIVATIVE:
            if dt > 0 and self._prev_a is not None:
                result = (a - self._prev_a) / dt
            else:
                result = 0.0
        elif op == MathOperation.INTEGRAL:
            if dt > 0:
                self.integral_value += a * dt
            result = self.integral_value
        elif op == MathOperation.ABS:
            result = abs(a)
        elif op == MathOperation.INVERT:
            result = -a
        elif op == MathOperation.LOG:
            result = math.log10(max(abs(a), LOG_FLOOR))
        elif op == MathOperation.SQRT:
            result = math.sqrt(abs(a))
        else:
            result = a

        self._prev_a = a
        self.value = result * self.scale + self.offset
        return self.value

    def reset(self) -> None:
        self.integral_value = 0.0
        self.value = 0.0
        self._prev_a = None


def default_channels() -> List[MathChannel]:
    return [MathChannel() for _ in range(MAX_PROBES)]


def update_all(channels: Sequence[MathChannel], probe_values: Sequence[float], dt: float) -> None:
    """Evaluate every enabled channel from the current probe values.

    Operands referring to a missing probe read as 0.
    """
    def operand(index: int) -> float:
        if 0 <= index < len(probe_values):
            return float(probe_values[index])
        return 0.0

    for channel in channels:
        if not channel.enabled:
            continue
        b = operand(channel.source_b) if channel.operation in BINARY_OPERATIONS else 0.0
        channel.compute(operand(channel.source_a), b, dt)
