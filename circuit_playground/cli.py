"""circuit-playground command-line interface.

Runs the built-in template circuits (or saved JSON circuits) headless:
    circuit-playground list                          # Show templates
    circuit-playground op voltage_divider            # DC operating point
    circuit-playground tran rc_lowpass --tstop 5m    # Transient, probes to CSV
    circuit-playground ac rc_lowpass -o bode.csv     # Bode sweep
    circuit-playground fft rc_lowpass --tstop 10m    # Spectrum, THD, SNR
    circuit-playground save rc_lowpass rc.json       # Write template as JSON
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import jax

from circuit_playground import __version__, configure_precision, get_precision_info
from circuit_playground._logging import set_log_level
from circuit_playground.analysis.ac import ACConfig, run_frequency_sweep
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.analysis.spectrum import WindowType, compute_fft
from circuit_playground.analysis.state import AnalysisState
from circuit_playground.errors import CircuitError
from circuit_playground.io.circuit_json import load_circuit, save_circuit
from circuit_playground.io.csv_writer import (
    write_frequency_csv,
    write_measurements_csv,
    write_waveform_csv,
)
from circuit_playground.netlist.circuit import Circuit, Probe
from circuit_playground.netlist.presets import TEMPLATES, build_template
from circuit_playground.simulation import Simulation

logger = logging.getLogger(__name__)


def parse_spice_value(s: str) -> float:
    """Parse a SPICE value with SI suffix.

    Examples:
        '1n' -> 1e-9
        '100u' -> 100e-6
        '1meg' -> 1e6
    """
    s = s.strip().lower()
    suffixes = [
        ("meg", 1e6),
        ("g", 1e9),
        ("t", 1e12),
        ("k", 1e3),
        ("m", 1e-3),
        ("u", 1e-6),
        ("n", 1e-9),
        ("p", 1e-12),
        ("f", 1e-15),
    ]
    for suffix, mult in suffixes:
        if s.endswith(suffix):
            return float(s[: -len(suffix)]) * mult
    return float(s)


def _spice_value(s: str) -> float:
    try:
        return parse_spice_value(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value: {s!r}") from None


def setup_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Package logger carries its own handler
    set_log_level(level)


def _load(name: str) -> Optional[Circuit]:
    """Template by name, or a circuit JSON file."""
    if name in TEMPLATES:
        return build_template(name)
    path = Path(name)
    if path.suffix == ".json" and path.exists():
        try:
            return load_circuit(path)
        except (ValueError, KeyError) as e:
            print(f"Error loading circuit: {e}", file=sys.stderr)
            return None
    print(
        f"Error: Unknown circuit {name!r}. Use a template name or a .json file.",
        file=sys.stderr,
    )
    return None


def _options(args: argparse.Namespace) -> SimulationOptions:
    options = SimulationOptions()
    if getattr(args, "temp", None) is not None:
        options.temp = args.temp
    if getattr(args, "method", None):
        options.tran_method = args.method
    if getattr(args, "uic", False):
        options.icmode = "uic"
    return options


def _select_probe(circuit: Circuit, label: Optional[str]) -> Optional[Probe]:
    if not circuit.probes:
        print(f"Error: Circuit {circuit.name!r} has no probes", file=sys.stderr)
        return None
    if label is None:
        return circuit.probes[-1]
    for probe in circuit.probes:
        if probe.label == label:
            return probe
    print(f"Error: No probe labelled {label!r}", file=sys.stderr)
    return None


def _run_transient(circuit: Circuit, args: argparse.Namespace) -> Optional[Simulation]:
    sim = Simulation(circuit, _options(args))
    if args.dt is not None:
        sim.set_time_step(args.dt)
    else:
        sim.auto_time_step()
    steps = sim.run(args.tstop)
    if sim.last_error is not None:
        print(f"Error in transient analysis: {sim.last_error}", file=sys.stderr)
        return None
    print(f"Transient: {steps} steps, dt={sim.time_step:.3e}s, t_stop={sim.time:.3e}s")
    return sim


def cmd_list(args: argparse.Namespace) -> int:
    """List template circuits."""
    width = max(len(name) for name in TEMPLATES)
    for name, (_, description) in TEMPLATES.items():
        print(f"{name:<{width}}  {description}")
    return 0


def cmd_op(args: argparse.Namespace) -> int:
    """Print the DC operating point."""
    circuit = _load(args.circuit)
    if circuit is None:
        return 1
    sim = Simulation(circuit, _options(args))
    if not sim.dc_analysis():
        print(f"Error in DC analysis: {sim.last_error}", file=sys.stderr)
        return 1

    print(f"Operating point: {circuit.name}")
    print("-" * 40)
    for probe in circuit.probes:
        print(f"{probe.label:<12} {sim.node_voltage(probe.node_id):>14.6g} V")
    system = sim.system
    for component in circuit.components:
        if component.has_branch:
            current = system.branch_current(sim.solution, component.id)
            name = f"I({component.label})"
            print(f"{name:<12} {current:>14.6g} A")
    return 0


def cmd_tran(args: argparse.Namespace) -> int:
    """Run a transient simulation and write probe waveforms."""
    circuit = _load(args.circuit)
    if circuit is None:
        return 1
    sim = _run_transient(circuit, args)
    if sim is None:
        return 1

    if not circuit.probes:
        return 0
    times = sim.get_history(circuit.probes[0].id).times
    channels = {p.label: sim.get_history(p.id).values for p in circuit.probes}

    if args.output:
        write_waveform_csv(args.output, times, channels)
        print(f"Results written to: {args.output}")

    per_probe = AnalysisState().update_measurements(sim)
    measurements = {p.label: per_probe[i] for i, p in enumerate(circuit.probes)}
    if args.measurements:
        write_measurements_csv(args.measurements, measurements)
        print(f"Measurements written to: {args.measurements}")
    for index, (label, meas) in enumerate(measurements.items()):
        if not meas.valid:
            continue
        line = f"{label:<12} Vpp={meas.v_pp:.4g} V  Vrms={meas.v_rms:.4g} V  Vavg={meas.v_avg:.4g} V"
        if meas.frequency > 0:
            line += f"  f={meas.frequency:.4g} Hz"
        if index > 0:
            line += f"  phase={meas.phase:.1f} deg"
        print(line)
    return 0


def cmd_ac(args: argparse.Namespace) -> int:
    """Run a Bode sweep."""
    circuit = _load(args.circuit)
    if circuit is None:
        return 1
    probe = _select_probe(circuit, args.probe)
    if probe is None:
        return 1

    config = ACConfig(
        freq_start=args.fstart, freq_stop=args.fstop, points=args.points, mode=args.mode
    )
    try:
        response = run_frequency_sweep(circuit, config, probe.node_id, options=_options(args))
    except (CircuitError, ValueError) as e:
        print(f"Error in AC analysis: {e}", file=sys.stderr)
        logger.debug("AC analysis failed", exc_info=True)
        return 1

    print(f"AC: {len(response)} points, {config.freq_start:.3g} Hz to {config.freq_stop:.3g} Hz")
    bandwidth = response.bandwidth()
    if bandwidth is not None:
        print(f"-3 dB frequency: {bandwidth:.4g} Hz")

    if args.output:
        write_frequency_csv(args.output, response.frequency, response.magnitude_db, response.phase_deg)
        print(f"Results written to: {args.output}")
    else:
        for f, mag, phase in zip(response.frequency, response.magnitude_db, response.phase_deg):
            print(f"{f:>12.4g} Hz {mag:>10.3f} dB {phase:>9.2f} deg")
    return 0


def cmd_fft(args: argparse.Namespace) -> int:
    """Spectrum of a probe waveform after a transient run."""
    circuit = _load(args.circuit)
    if circuit is None:
        return 1
    probe = _select_probe(circuit, args.probe)
    if probe is None:
        return 1
    sim = _run_transient(circuit, args)
    if sim is None:
        return 1

    values = sim.get_history(probe.id).values
    if len(values) < 2:
        print("Error: Not enough samples for FFT", file=sys.stderr)
        return 1
    result = compute_fft(values, 1.0 / sim.time_step, WindowType[args.window.upper()])

    print(f"FFT of {probe.label}: {result.num_bins} bins, {result.window.name.lower()} window")
    print(f"Fundamental: {result.fundamental_freq:.4g} Hz")
    print(f"THD: {result.thd:.3f} %")
    print(f"SNR: {result.snr:.2f} dB")

    if args.output:
        write_frequency_csv(args.output, result.frequency, result.magnitude_db, result.phase_deg)
        print(f"Spectrum written to: {args.output}")
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    """Write a template circuit as JSON."""
    circuit = _load(args.circuit)
    if circuit is None:
        return 1
    save_circuit(circuit, args.output)
    print(f"Circuit written to: {args.output}")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Show system information."""
    info = get_precision_info()
    print("circuit-playground System Information")
    print("-" * 40)
    print(f"Version: {__version__}")
    print(f"Backend: {info['backend']}")
    print(f"Float64 enabled: {info['x64_enabled']}")
    print(f"Devices: {jax.devices()}")
    return 0


def _add_solver_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--temp", type=float, help="Circuit temperature in Celsius")


def _add_transient_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tstop", type=_spice_value, default=10e-3, help="Simulated duration (default: 10m)"
    )
    parser.add_argument("--dt", type=_spice_value, help="Time step (default: automatic)")
    parser.add_argument(
        "--method", choices=["trap", "euler"], help="Integration method (default: trap)"
    )
    parser.add_argument(
        "--uic", action="store_true", help="Start from component initial conditions"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="circuit-playground",
        description="circuit-playground: interactive analog circuit simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  circuit-playground list                            List template circuits
  circuit-playground op zener_reference              DC operating point
  circuit-playground tran rc_lowpass -o out.csv      Transient waveforms
  circuit-playground ac rc_lowpass --points 20       Bode sweep
  circuit-playground fft inverting_amp --tstop 20m   Spectrum and THD
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Increase verbosity (use -vv for debug)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-error output")
    parser.add_argument("--x32", action="store_true", help="Force float32 precision")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    list_parser = subparsers.add_parser("list", help="List template circuits")
    list_parser.set_defaults(func=cmd_list)

    op_parser = subparsers.add_parser("op", help="DC operating point")
    op_parser.add_argument("circuit", help="Template name or circuit .json file")
    _add_solver_options(op_parser)
    op_parser.set_defaults(func=cmd_op)

    tran_parser = subparsers.add_parser("tran", help="Transient simulation")
    tran_parser.add_argument("circuit", help="Template name or circuit .json file")
    tran_parser.add_argument("-o", "--output", help="Waveform CSV output path")
    tran_parser.add_argument("-m", "--measurements", help="Measurement CSV output path")
    _add_transient_options(tran_parser)
    _add_solver_options(tran_parser)
    tran_parser.set_defaults(func=cmd_tran)

    ac_parser = subparsers.add_parser("ac", help="Bode frequency sweep")
    ac_parser.add_argument("circuit", help="Template name or circuit .json file")
    ac_parser.add_argument("-o", "--output", help="Bode CSV output path")
    ac_parser.add_argument("--probe", help="Output probe label (default: last probe)")
    ac_parser.add_argument("--fstart", type=_spice_value, default=10.0, help="Start frequency")
    ac_parser.add_argument("--fstop", type=_spice_value, default=100e3, help="Stop frequency")
    ac_parser.add_argument("--points", type=int, default=10, help="Points per decade/octave or total")
    ac_parser.add_argument(
        "--mode", choices=["dec", "oct", "lin", "log"], default="dec", help="Sweep spacing"
    )
    _add_solver_options(ac_parser)
    ac_parser.set_defaults(func=cmd_ac)

    fft_parser = subparsers.add_parser("fft", help="Spectrum of a transient waveform")
    fft_parser.add_argument("circuit", help="Template name or circuit .json file")
    fft_parser.add_argument("-o", "--output", help="Spectrum CSV output path")
    fft_parser.add_argument("--probe", help="Probe label (default: last probe)")
    fft_parser.add_argument(
        "--window",
        choices=[w.name.lower() for w in WindowType],
        default="hanning",
        help="Window function",
    )
    _add_transient_options(fft_parser)
    _add_solver_options(fft_parser)
    fft_parser.set_defaults(func=cmd_fft)

    save_parser = subparsers.add_parser("save", help="Write a circuit as JSON")
    save_parser.add_argument("circuit", help="Template name or circuit .json file")
    save_parser.add_argument("output", help="Output .json path")
    save_parser.set_defaults(func=cmd_save)

    info_parser = subparsers.add_parser("info", help="Show system information")
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)
    if args.x32:
        configure_precision(force_x64=False)

    if hasattr(args, "func"):
        return args.func(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
