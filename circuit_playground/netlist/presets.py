"""Built-in template circuits

Each template builder returns a fresh ``Circuit`` with probes already placed
on its interesting nodes. ``TEMPLATES`` maps the template name to
(builder, description).
"""

from typing import Callable, Dict, Tuple

from circuit_playground.devices.opamp import OpAmp
from circuit_playground.devices.passives import Capacitor, Inductor, Resistor
from circuit_playground.devices.semiconductors import BJT, LED, MOSFET, PMOS, Diode, Zener
from circuit_playground.devices.sources import ACVoltage, DCVoltage, SquareWave
from circuit_playground.netlist.circuit import GROUND, Circuit


def voltage_divider() -> Circuit:
    c = Circuit("voltage_divider")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(DCVoltage(10.0), [vin, GROUND])
    c.add_component(Resistor(1000.0), [vin, vout])
    c.add_component(Resistor(1000.0), [vout, GROUND])
    c.add_probe(vout, "Vout")
    return c


def rc_lowpass() -> Circuit:
    """First-order RC low-pass, corner 1/(2 pi R C) ~ 1.59 kHz."""
    c = Circuit("rc_lowpass")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(ACVoltage(1.0, 1000.0), [vin, GROUND])
    c.add_component(Resistor(1000.0), [vin, vout])
    c.add_component(Capacitor(100e-9), [vout, GROUND])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def rc_highpass() -> Circuit:
    c = Circuit("rc_highpass")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(ACVoltage(1.0, 1000.0), [vin, GROUND])
    c.add_component(Capacitor(100e-9), [vin, vout])
    c.add_component(Resistor(1000.0), [vout, GROUND])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def rl_lowpass() -> Circuit:
    """First-order RL low-pass, corner R/(2 pi L) ~ 1.59 kHz."""
    c = Circuit("rl_lowpass")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(ACVoltage(1.0, 1000.0), [vin, GROUND])
    c.add_component(Inductor(10e-3), [vin, vout])
    c.add_component(Resistor(100.0), [vout, GROUND])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def halfwave_rectifier() -> Circuit:
    c = Circuit("halfwave_rectifier")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(ACVoltage(10.0, 60.0), [vin, GROUND])
    c.add_component(Diode(), [vin, vout])
    c.add_component(Resistor(1000.0), [vout, GROUND])
    c.add_component(Capacitor(10e-6), [vout, GROUND])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def led_with_resistor() -> Circuit:
    c = Circuit("led_with_resistor")
    vcc, anode = c.add_node(), c.add_node()
    c.add_component(DCVoltage(5.0), [vcc, GROUND])
    c.add_component(Resistor(220.0), [vcc, anode])
    c.add_component(LED(), [anode, GROUND])
    c.add_probe(anode, "Vled")
    return c


def inverting_amp() -> Circuit:
    """Op-amp inverting amplifier with gain -Rf/Rin = -10."""
    c = Circuit("inverting_amp")
    vin, inv, vout = c.add_node(), c.add_node(), c.add_node()
    c.add_component(ACVoltage(0.1, 1000.0), [vin, GROUND])
    c.add_component(Resistor(1000.0), [vin, inv])
    c.add_component(Resistor(10000.0), [inv, vout])
    c.add_component(OpAmp(), [GROUND, inv, vout])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def common_emitter() -> Circuit:
    """NPN common-emitter stage with divider bias and emitter degeneration."""
    c = Circuit("common_emitter")
    vcc, vin, base, coll, emit = (c.add_node() for _ in range(5))
    c.add_component(DCVoltage(12.0), [vcc, GROUND])
    c.add_component(ACVoltage(0.01, 1000.0), [vin, GROUND])
    c.add_component(Capacitor(10e-6), [vin, base])
    c.add_component(Resistor(47e3), [vcc, base])
    c.add_component(Resistor(10e3), [base, GROUND])
    c.add_component(Resistor(2.2e3), [vcc, coll])
    c.add_component(Resistor(1e3), [emit, GROUND])
    c.add_component(BJT(), [base, coll, emit])
    c.add_probe(vin, "Vin")
    c.add_probe(coll, "Vc")
    return c


def cmos_inverter() -> Circuit:
    c = Circuit("cmos_inverter")
    vdd, vin, vout = c.add_node(), c.add_node(), c.add_node()
    c.add_component(DCVoltage(5.0), [vdd, GROUND])
    c.add_component(SquareWave(2.5, 1000.0, offset=2.5), [vin, GROUND])
    c.add_component(PMOS(), [vin, vout, vdd])
    c.add_component(MOSFET(), [vin, vout, GROUND])
    c.add_component(Capacitor(10e-12), [vout, GROUND])
    c.add_probe(vin, "Vin")
    c.add_probe(vout, "Vout")
    return c


def zener_reference() -> Circuit:
    c = Circuit("zener_reference")
    vcc, vref = c.add_node(), c.add_node()
    c.add_component(DCVoltage(12.0), [vcc, GROUND])
    c.add_component(Resistor(1000.0), [vcc, vref])
    # Reverse biased: anode to ground, cathode to the reference node
    c.add_component(Zener(vz=5.1), [GROUND, vref])
    c.add_probe(vref, "Vref")
    return c


TEMPLATES: Dict[str, Tuple[Callable[[], Circuit], str]] = {
    "voltage_divider": (voltage_divider, "10 V across two 1 kOhm resistors"),
    "rc_lowpass": (rc_lowpass, "RC low-pass, fc ~ 1.59 kHz"),
    "rc_highpass": (rc_highpass, "RC high-pass, fc ~ 1.59 kHz"),
    "rl_lowpass": (rl_lowpass, "RL low-pass, fc ~ 1.59 kHz"),
    "halfwave_rectifier": (halfwave_rectifier, "Diode rectifier with RC load"),
    "led_with_resistor": (led_with_resistor, "LED with 220 Ohm current limiter"),
    "inverting_amp": (inverting_amp, "Op-amp inverting amplifier, gain -10"),
    "common_emitter": (common_emitter, "NPN common-emitter amplifier"),
    "cmos_inverter": (cmos_inverter, "CMOS inverter driven by a square wave"),
    "zener_reference": (zener_reference, "5.1 V zener shunt reference"),
}


def build_template(name: str) -> Circuit:
    """Build a template circuit by name."""
    if name not in TEMPLATES:
        raise KeyError(f"Unknown template {name!r}. Available: {', '.join(TEMPLATES)}")
    builder, _ = TEMPLATES[name]
    return builder()
