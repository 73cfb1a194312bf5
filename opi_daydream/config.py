"""
Configuration module for the Daydream OPI client.

Settings come from a YAML file with the sections below; anything missing
keeps its dataclass default. The default file, settings.yaml, ships inside
the package so installed copies find it too.

    connection:  ip, port, probe_timeout, socket_timeout
    display:     pixels_per_degree, lut_file
    background:  level, fixation, fixation_size, fixation_color
    logging:     level, file, file_level
    stimuli:     list of stimulus mappings presented by main.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from loguru import logger

from .core.contracts import DegreesToPixels
from .imaging.luminance import LuminanceTable

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "settings.yaml"


@dataclass
class DaydreamConfig:
    """Runtime configuration for one Daydream session.

    Attributes:
        ip: Phone address
        port: OPI server port on the phone
        probe_timeout: Seconds to wait for the reachability probe
        socket_timeout: Seconds any single reply may take once connected
        pixels_per_degree: Linear degrees -> pixels scale for one eye
        lut_file: Optional file with 256 cd/m^2 values, one per grey level
        background_level: Background luminance in cd/m^2
        fixation: Fixation marker ("Cross" or None)
        fixation_size: Cross-hair length in pixels
        fixation_color: Cross-hair RGB
        stimuli: Stimulus mappings for the command-line run
        log_level: Console log level
        log_file: Optional log file path
        log_file_level: Level for the log file sink
    """
    # Connection
    ip: str = "127.0.0.1"
    port: int = 50008
    probe_timeout: float = 10.0
    socket_timeout: float = 1000.0

    # Display
    pixels_per_degree: float = 50.0
    lut_file: Optional[str] = None

    # Background
    background_level: Optional[float] = 10.0
    fixation: Optional[str] = "Cross"
    fixation_size: int = 21  # odd keeps the cross centred
    fixation_color: Tuple[int, int, int] = (0, 128, 0)

    # Command-line run
    stimuli: List[Dict[str, Any]] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_file_level: str = "DEBUG"

    def degrees_to_pixels(self) -> DegreesToPixels:
        """Linear transform from degrees to pixels for one eye."""
        scale = self.pixels_per_degree

        def transform(x: float, y: float) -> Tuple[float, float]:
            return (scale * x, scale * y)

        return transform

    def load_lut(self) -> LuminanceTable:
        """Luminance table from lut_file, or the flat 1000 cd/m^2 table."""
        if self.lut_file:
            return LuminanceTable.from_file(self.lut_file)
        return LuminanceTable.constant()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DaydreamConfig:
        connection = data.get("connection") or {}
        display = data.get("display") or {}
        background = data.get("background") or {}
        logging_cfg = data.get("logging") or {}

        defaults = cls()
        color = background.get("fixation_color", defaults.fixation_color)
        return cls(
            ip=str(connection.get("ip", defaults.ip)),
            port=int(connection.get("port", defaults.port)),
            probe_timeout=float(connection.get("probe_timeout", defaults.probe_timeout)),
            socket_timeout=float(connection.get("socket_timeout", defaults.socket_timeout)),
            pixels_per_degree=float(display.get("pixels_per_degree", defaults.pixels_per_degree)),
            lut_file=display.get("lut_file", defaults.lut_file),
            background_level=background.get("level", defaults.background_level),
            fixation=background.get("fixation", defaults.fixation),
            fixation_size=int(background.get("fixation_size", defaults.fixation_size)),
            fixation_color=tuple(int(c) for c in color),
            stimuli=list(data.get("stimuli") or []),
            log_level=str(logging_cfg.get("level", defaults.log_level)).upper(),
            log_file=logging_cfg.get("file", defaults.log_file),
            log_file_level=str(logging_cfg.get("file_level", defaults.log_file_level)).upper(),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> DaydreamConfig:
    """Load configuration from file.

    Falls back to the default location, then to built-in defaults.
    """
    candidates = []
    if config_path:
        if Path(config_path).exists():
            candidates.append(Path(config_path))
        else:
            logger.warning(f"Config file {config_path} not found")
    candidates.append(DEFAULT_CONFIG_PATH)

    for path in candidates:
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            logger.debug(f"Loaded config from {path}")
            return DaydreamConfig.from_dict(data)

    return DaydreamConfig()
