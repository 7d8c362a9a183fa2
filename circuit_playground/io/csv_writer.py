"""Write waveforms and measurement summaries to CSV format.

Simple, portable format compatible with spreadsheets and data analysis tools.
"""

import csv
from dataclasses import fields
from pathlib import Path
from typing import Dict, Mapping, Sequence, Union

import numpy as np

from circuit_playground.analysis.measurements import WaveformMeasurements

MEASUREMENT_FIELDS = tuple(f.name for f in fields(WaveformMeasurements) if f.name != "valid")


def write_waveform_csv(
    output_path: Union[str, Path],
    times: Sequence[float],
    channels: Mapping[str, Sequence[float]],
    precision: int = 9,
) -> None:
    """Write time-domain channels to CSV file.

    Format:
        time,Vin,Vout,...
        0.000000000e+00,1.000000000e+00,0.000000000e+00,...
        1.000000000e-06,...

    Args:
        output_path: Path to output file
        times: Time axis
        channels: Channel label -> values (same length as ``times``), in column order
        precision: Number of decimal places for scientific notation
    """
    output_path = Path(output_path)
    x_data = np.asarray(times)
    columns = {label: np.asarray(values) for label, values in channels.items()}
    for label, values in columns.items():
        if len(values) != len(x_data):
            raise ValueError(
                f"Channel {label!r} has {len(values)} samples, time axis has {len(x_data)}"
            )

    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)

        # Header row
        writer.writerow(["time"] + list(columns))

        # Data rows
        fmt = f"{{:.{precision}e}}"
        for i in range(len(x_data)):
            row = [fmt.format(x_data[i])]
            for values in columns.values():
                row.append(fmt.format(values[i]))
            writer.writerow(row)


def write_frequency_csv(
    output_path: Union[str, Path],
    frequency: Sequence[float],
    magnitude_db: Sequence[float],
    phase_deg: Sequence[float],
    precision: int = 9,
) -> None:
    """Write Bode data (frequency, magnitude_db, phase_deg) to CSV file."""
    output_path = Path(output_path)
    fmt = f"{{:.{precision}e}}"
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["frequency", "magnitude_db", "phase_deg"])
        for row in zip(frequency, magnitude_db, phase_deg):
            writer.writerow([fmt.format(v) for v in row])


def write_measurements_csv(
    output_path: Union[str, Path],
    measurements: Mapping[str, WaveformMeasurements],
    decimals: int = 6,
) -> None:
    """Write one row of measurements per channel.

    Format:
        channel,v_min,v_max,...,pulse_width
        Vout,0.000000,5.000000,...

    Invalid measurements are skipped.
    """
    output_path = Path(output_path)
    fmt = f"{{:.{decimals}f}}"
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["channel"] + list(MEASUREMENT_FIELDS))
        for label, meas in measurements.items():
            if not meas.valid:
                continue
            writer.writerow([label] + [fmt.format(getattr(meas, name)) for name in MEASUREMENT_FIELDS])


def read_csv(input_path: Union[str, Path]) -> Dict[str, np.ndarray]:
    """Read a CSV written by this module.

    Returns:
        Column name -> values. Numeric columns become float arrays; a
        non-numeric column (the measurement ``channel`` labels) stays a
        string array.
    """
    input_path = Path(input_path)

    with open(input_path, "r", newline="") as f:
        reader = csv.reader(f)
        header = next(reader)
        data = {name: [] for name in header}
        for row in reader:
            for name, cell in zip(header, row):
                data[name].append(cell)

    result = {}
    for name, cells in data.items():
        try:
            result[name] = np.array([float(c) for c in cells])
        except ValueError:
            result[name] = np.array(cells)
    return result
