"""Device models for circuit-playground

Every component kind is a dataclass with an MNA ``stamp``; ``COMPONENT_CLASSES``
maps each ``ComponentKind`` to its class for serialization.
"""

from circuit_playground.devices.base import (
    Component,
    ComponentKind,
    DeviceStamps,
    ParameterKind,
)
from circuit_playground.devices.opamp import OpAmp
from circuit_playground.devices.passives import Capacitor, Fuse, Inductor, Resistor
from circuit_playground.devices.semiconductors import (
    BJT,
    LED,
    MOSFET,
    PMOS,
    PNP,
    Diode,
    Schottky,
    Zener,
)
from circuit_playground.devices.sources import (
    ACVoltage,
    DCCurrent,
    DCVoltage,
    NoiseSource,
    PeriodicSource,
    SawtoothWave,
    SquareWave,
    SweepConfig,
    SweepMode,
    TriangleWave,
    VoltageSource,
)

COMPONENT_CLASSES = {
    cls.kind: cls
    for cls in (
        Resistor,
        Capacitor,
        Inductor,
        Fuse,
        DCVoltage,
        ACVoltage,
        DCCurrent,
        SquareWave,
        TriangleWave,
        SawtoothWave,
        NoiseSource,
        Diode,
        Zener,
        Schottky,
        LED,
        BJT,
        PNP,
        MOSFET,
        PMOS,
        OpAmp,
    )
}

__all__ = [
    # Base
    "Component",
    "ComponentKind",
    "DeviceStamps",
    "ParameterKind",
    "COMPONENT_CLASSES",
    # Passives
    "Resistor",
    "Capacitor",
    "Inductor",
    "Fuse",
    # Sources
    "VoltageSource",
    "PeriodicSource",
    "DCVoltage",
    "ACVoltage",
    "DCCurrent",
    "SquareWave",
    "TriangleWave",
    "SawtoothWave",
    "NoiseSource",
    "SweepConfig",
    "SweepMode",
    # Semiconductors
    "Diode",
    "Zener",
    "Schottky",
    "LED",
    "BJT",
    "PNP",
    "MOSFET",
    "PMOS",
    # Op-amp
    "OpAmp",
]
