"""I/O utilities for circuit-playground

Provides CSV export of waveforms, Bode plots and measurements, and JSON
persistence of circuits.
"""

from circuit_playground.io.circuit_json import (
    circuit_from_dict,
    circuit_to_dict,
    load_circuit,
    save_circuit,
)
from circuit_playground.io.csv_writer import (
    read_csv,
    write_frequency_csv,
    write_measurements_csv,
    write_waveform_csv,
)

__all__ = [
    "circuit_from_dict",
    "circuit_to_dict",
    "load_circuit",
    "save_circuit",
    "read_csv",
    "write_frequency_csv",
    "write_measurements_csv",
    "write_waveform_csv",
]
