"""
Luminance lookup table.

lut[g] is the luminance in cd/m^2 the phone produces for grey level g.
Converting a requested luminance to a grey level is a nearest-match
search over the table.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray
from loguru import logger

from ..core.errors import LookupTableError

LUT_SIZE = 256
DEFAULT_LUMINANCE = 1000.0


class LuminanceTable:
    """
    256-entry grey level -> cd/m^2 table.

    Guarantees:
    - Exactly 256 finite entries
    - find_pixel_value always returns an int in [0, 255]
    """

    def __init__(self, values: Union[Sequence[float], NDArray[np.float64]]):
        table = np.asarray(values, dtype=np.float64).ravel()
        if table.size != LUT_SIZE:
            raise LookupTableError(
                f"Luminance lookup table must have {LUT_SIZE} entries, got {table.size}"
            )
        if not np.all(np.isfinite(table)):
            raise LookupTableError("Luminance lookup table contains non-finite values")
        self._table = table

    @classmethod
    def constant(cls, value: float = DEFAULT_LUMINANCE) -> LuminanceTable:
        return cls(np.full(LUT_SIZE, value, dtype=np.float64))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> LuminanceTable:
        """Load 256 whitespace or newline separated values (one per grey level)."""
        values = np.loadtxt(Path(path).expanduser(), dtype=np.float64, ndmin=1)
        logger.info(f"Loaded luminance table from {path}")
        return cls(values)

    def find_pixel_value(self, cdm2: float) -> int:
        """
        Grey level whose luminance is closest to cdm2.

        Ties resolve to the lowest grey level. The constant -1 in the
        comparison does not move the minimum.
        """
        return int(np.argmin(np.abs(self._table - cdm2) - 1))

    @property
    def values(self) -> NDArray[np.float64]:
        return self._table.copy()

    def __len__(self) -> int:
        return LUT_SIZE

    def __getitem__(self, grey: int) -> float:
        return float(self._table[grey])
