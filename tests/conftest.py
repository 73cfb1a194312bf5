from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from opi_daydream.config import DaydreamConfig
from opi_daydream.device.daydream import DaydreamSession
from tests.utils.fake_daydream import FakeDaydream

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def lut() -> np.ndarray:
    """Strictly increasing table: grey level g gives g / 2 cd/m^2."""
    return np.arange(256, dtype=np.float64) * 0.5


@pytest.fixture
def fake_phone() -> Iterator[FakeDaydream]:
    """Fake phone listening on an ephemeral localhost port."""
    phone = FakeDaydream().start()
    try:
        yield phone
    finally:
        phone.stop()


@pytest.fixture
def config(fake_phone: FakeDaydream) -> DaydreamConfig:
    """Short timeouts so a broken exchange fails the test instead of hanging it."""
    return DaydreamConfig(
        ip="127.0.0.1",
        port=fake_phone.port,
        probe_timeout=2.0,
        socket_timeout=5.0,
        pixels_per_degree=50.0,
    )


@pytest.fixture
def session(config: DaydreamConfig, lut: np.ndarray) -> Iterator[DaydreamSession]:
    """Session initialised against the fake phone, closed afterwards if still open."""
    s = DaydreamSession(config=config)
    s.initialise(lut=lut)
    try:
        yield s
    finally:
        if s.is_connected:
            s.close()
