# gas_balance.py
"""
BioReconcile - Off-Gas Analysis
===============================

Supply rates of O2 and CO2 from inlet gas flows and exhaust gas composition,
using the inert-gas (N2) balance to account for the volume change between
inlet and outlet gas. Rates are exhaust minus inlet: CO2 evolution is
positive and O2 uptake is negative.

All gas flows in L/h at normal conditions, mole fractions dimensionless,
rates in mol/h.

Reference: Heinzle, E., Dunn, I.J. (1987). Methods and instruments in
fermentation gas analysis. In: Biotechnology Vol. 4, VCH.
"""

import logging
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .config import MOLAR_GAS_VOLUME, X_CO2_AIR, X_O2_AIR
from .interpolation import build_interpolator
from .validation import ValidationReport, raise_for_report, validate_dataframe

logger = logging.getLogger(__name__)

__all__ = [
    "inlet_o2_fraction",
    "inlet_co2_fraction",
    "water_correction",
    "inert_ratio",
    "co2_rate",
    "o2_rate",
    "substrate_rate",
    "volumetric_rate",
    "respiratory_quotient",
    "concentration_to_mass",
    "off_gas_rates",
]

FloatOrArray = float | NDArray[np.floating[Any]]


def inlet_o2_fraction(f_air: FloatOrArray, f_o2: FloatOrArray, x_o2_air: float = X_O2_AIR) -> FloatOrArray:
    """O2 mole fraction of the mixed inlet gas (air plus pure O2)."""
    return (f_air * x_o2_air + f_o2) / (f_air + f_o2)


def inlet_co2_fraction(f_air: FloatOrArray, f_o2: FloatOrArray, x_co2_air: float = X_CO2_AIR) -> FloatOrArray:
    """CO2 mole fraction of the mixed inlet gas."""
    return (f_air * x_co2_air) / (f_air + f_o2)


def water_correction(x_wet: float = X_O2_AIR, x_o2_air: float = X_O2_AIR) -> float:
    """
    Exhaust water fraction estimated from the O2 reading of humidified air.

    Zero when the analyser reads dry-air O2 on the wet reference gas.
    """
    return 1 - x_wet / x_o2_air


def inert_ratio(
    x_o2_in: FloatOrArray,
    x_co2_in: FloatOrArray,
    x_o2: FloatOrArray,
    x_co2: FloatOrArray,
    exh2o: float | None = None,
) -> FloatOrArray:
    """Ratio of inert fractions inlet/outlet, i.e. outlet-to-inlet gas flow ratio."""
    if exh2o is None:
        exh2o = water_correction()
    return (1 - x_o2_in - x_co2_in) / (1 - x_o2 - x_co2 - exh2o)


def co2_rate(
    f_air: FloatOrArray,
    f_o2: FloatOrArray,
    x_co2: FloatOrArray,
    x_co2_in: FloatOrArray,
    inert: FloatOrArray,
    molar_volume: float = MOLAR_GAS_VOLUME,
) -> FloatOrArray:
    """CO2 exhaust rate (mol/h), positive when CO2 leaves the reactor."""
    return (f_air + f_o2) / molar_volume * (x_co2 * inert - x_co2_in)


def o2_rate(
    f_air: FloatOrArray,
    f_o2: FloatOrArray,
    x_o2: FloatOrArray,
    x_o2_in: FloatOrArray,
    inert: FloatOrArray,
    molar_volume: float = MOLAR_GAS_VOLUME,
) -> FloatOrArray:
    """O2 exhaust rate (mol/h), negative when O2 is taken up."""
    return (f_air + f_o2) / molar_volume * (x_o2 * inert - x_o2_in)


def substrate_rate(feed_rate: FloatOrArray, c_feed: float, molar_mass: float) -> FloatOrArray:
    """Substrate rate (mol/h) from the reservoir outflow (L/h) and feed concentration (g/L)."""
    return -feed_rate * c_feed / molar_mass


def volumetric_rate(q: FloatOrArray, m_x: FloatOrArray) -> FloatOrArray:
    """Volumetric rate from a specific rate and the biomass amount."""
    return q * m_x


def respiratory_quotient(cer: FloatOrArray, our: FloatOrArray) -> FloatOrArray:
    """RQ = OUR / CER."""
    return our / cer


def concentration_to_mass(
    offline: pd.DataFrame,
    online: pd.DataFrame,
    column: str,
    time_column: str = "time",
    volume_column: str = "V_L",
) -> pd.DataFrame:
    """
    Add ``m_<column>`` to ``offline``: concentration times the online volume.

    The online volume is interpolated (and linearly extrapolated) to the
    offline sample times. Returns a copy.
    """
    raise_for_report(
        ValidationReport.from_results(
            [
                validate_dataframe(offline, "offline", required_columns=[time_column, column]),
                validate_dataframe(
                    online, "online", required_columns=[time_column, volume_column], min_rows=2
                ),
            ]
        )
    )
    volume = build_interpolator(
        online[time_column].to_numpy(dtype=float), online[volume_column].to_numpy(dtype=float)
    )
    out = offline.copy()
    out[f"m_{column}"] = out[column].to_numpy(dtype=float) * volume(out[time_column].to_numpy(dtype=float))
    return out


def off_gas_rates(
    df: pd.DataFrame,
    x_o2_air: float = X_O2_AIR,
    x_co2_air: float = X_CO2_AIR,
    exh2o: float | None = None,
    molar_volume: float = MOLAR_GAS_VOLUME,
) -> pd.DataFrame:
    """
    Add ``Q_CO2``, ``Q_O2`` and ``RQ`` columns computed from gas data.

    ``df`` must contain ``F_AIR`` and ``F_O2`` (L/h) and exhaust mole
    fractions ``x_O2`` and ``x_CO2``. Returns a copy.
    """
    raise_for_report(
        ValidationReport.from_results(
            [validate_dataframe(df, "gas data", required_columns=["F_AIR", "F_O2", "x_O2", "x_CO2"])]
        )
    )
    out = df.copy()
    f_air = out["F_AIR"].to_numpy(dtype=float)
    f_o2 = out["F_O2"].to_numpy(dtype=float)
    x_o2_in = inlet_o2_fraction(f_air, f_o2, x_o2_air)
    x_co2_in = inlet_co2_fraction(f_air, f_o2, x_co2_air)
    inert = inert_ratio(x_o2_in, x_co2_in, out["x_O2"].to_numpy(dtype=float),
                        out["x_CO2"].to_numpy(dtype=float), exh2o)

    out["Q_CO2"] = co2_rate(f_air, f_o2, out["x_CO2"].to_numpy(dtype=float), x_co2_in, inert, molar_volume)
    out["Q_O2"] = o2_rate(f_air, f_o2, out["x_O2"].to_numpy(dtype=float), x_o2_in, inert, molar_volume)
    with np.errstate(divide="ignore", invalid="ignore"):
        out["RQ"] = -out["Q_O2"] / out["Q_CO2"]
    n_undefined = int((~np.isfinite(out["RQ"])).sum())
    if n_undefined:
        logger.warning("RQ undefined for %d row(s) with zero CO2 rate", n_undefined)
    return out
