from __future__ import annotations

import socket

import numpy as np
import pytest

from opi_daydream.config import DaydreamConfig
from opi_daydream.core.contracts import Eye, PresentResult, Stimulus, StimulusKind
from opi_daydream.core.errors import DeviceConnectionError, DeviceUnreachableError, LookupTableError
from opi_daydream.device.daydream import DaydreamSession
from opi_daydream.protocol.connection import DeviceConnection


def _stimulus(**overrides) -> Stimulus:
    fields = dict(eye="L", x=3, y=3, size=0.43, level=100, duration=200, response_window=1500)
    fields.update(overrides)
    return Stimulus(**fields)


# ============================================================
# initialise
# ============================================================

def test_initialise_reads_geometry(fake_phone, config, lut):
    session = DaydreamSession(config=config)
    result = session.initialise(lut=lut)
    try:
        assert result.ok
        assert fake_phone.commands == ["OPI_GET_RES"]
        # probe connection plus the real one
        assert fake_phone.connections == 2
        state = session.query_device()
        assert (state["width"], state["height"]) == (2560, 1440)
        assert (state["single_width"], state["single_height"]) == (1280, 1440)
    finally:
        session.close()


def test_initialise_defaults_to_flat_lut_and_fifty_pixels_per_degree(fake_phone, config):
    session = DaydreamSession(config=config)
    session.initialise()
    try:
        state = session.query_device()
        assert np.all(state["lut"] == 1000.0)
        assert tuple(state["degrees_to_pixels"](2, -1)) == (100.0, -50.0)
    finally:
        session.close()


def test_initialise_unreachable_is_fatal(lut):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    session = DaydreamSession(config=DaydreamConfig(probe_timeout=1.0))
    with pytest.raises(DeviceUnreachableError):
        session.initialise(ip="127.0.0.1", port=port, lut=lut)
    assert not session.is_connected


def test_initialise_rejects_short_lut(fake_phone, config):
    session = DaydreamSession(config=config)
    with pytest.raises(LookupTableError):
        session.initialise(lut=[1.0] * 255)
    # nothing sent
    assert fake_phone.commands == []


def test_initialise_again_closes_previous_connection(fake_phone, config, lut):
    session = DaydreamSession(config=config)
    session.initialise(lut=lut)
    first_socket = session.query_device()["socket"]
    try:
        # the phone serves one client at a time: a leaked socket would stall here
        assert session.initialise(lut=lut).ok
        assert fake_phone.commands == ["OPI_GET_RES", "OPI_CLOSE", "OPI_GET_RES"]
        assert first_socket.fileno() == -1
        assert session.query_device()["socket"] is not first_socket
        assert session.is_connected
    finally:
        session.close()


def test_truncated_handshake_releases_socket(fake_phone, config, lut, monkeypatch):
    opened = []
    real_open = DeviceConnection.open

    def recording_open(*args, **kwargs):
        connection = real_open(*args, **kwargs)
        opened.append(connection)
        return connection

    monkeypatch.setattr(DeviceConnection, "open", recording_open)
    fake_phone.truncate_resolution = True

    session = DaydreamSession(config=config)
    with pytest.raises(DeviceConnectionError):
        session.initialise(lut=lut)
    assert not session.is_connected
    assert session.query_device()["socket"] is None
    assert len(opened) == 1 and not opened[0].is_open

    # a later initialise starts clean
    fake_phone.truncate_resolution = False
    try:
        assert session.initialise(lut=lut).ok
        assert session.query_device()["width"] == 2560
    finally:
        session.close()


# ============================================================
# load_image
# ============================================================

def test_load_image_streams_exact_payload(session, fake_phone):
    image = np.arange(4 * 5 * 3, dtype=np.uint8).reshape(4, 5, 3)
    assert session.load_image(image) is True
    assert fake_phone.commands[-1] == "OPI_IMAGE 5 4"
    upload = fake_phone.uploads[-1]
    assert (upload.width, upload.height) == (5, 4)
    assert len(upload.payload) == 4 * 5 * 3
    assert upload.payload == image.tobytes()


def test_load_image_sends_nothing_without_ready(session, fake_phone):
    fake_phone.image_reply = "BUSY"
    assert session.load_image(np.zeros((3, 3, 3), dtype=np.uint8)) is False
    session.close()
    assert fake_phone.uploads == []
    assert fake_phone.commands == ["OPI_GET_RES", "OPI_IMAGE 3 3", "OPI_CLOSE"]


def test_load_image_fails_without_ok(session, fake_phone):
    fake_phone.image_ack = "CORRUPT"
    assert session.load_image(np.zeros((2, 2, 3), dtype=np.uint8)) is False
    assert fake_phone.payload_bytes == 12


# ============================================================
# present
# ============================================================

def test_present_seen(session, fake_phone):
    fake_phone.present_response = (1, 123.0)
    result = session.present(_stimulus())
    assert result == PresentResult(err=None, seen=True, time=123.0)
    # size 0.43 deg -> radius round(10.75) = 11 -> 22 x 22 disc
    assert fake_phone.commands[1:] == ["OPI_IMAGE 22 22", "OPI_MONO_PRESENT L 150 150 200 1500"]
    assert fake_phone.payload_bytes == 22 * 22 * 3


def test_present_not_seen_returns_time(session, fake_phone):
    fake_phone.present_response = (0, -1.0)
    result = session.present(_stimulus(eye=Eye.RIGHT, x=-2, y=1.5))
    assert result.err is None
    assert result.seen is False
    assert result.time == -1.0
    assert fake_phone.commands[-1] == "OPI_MONO_PRESENT R -100 75 200 1500"


@pytest.mark.parametrize(
    "code, message",
    [
        (0, "Background image not set"),
        (1, "Trouble with stim image"),
        (2, "Location out of range for daydream"),
        (3, "OPI present error back from daydream"),
    ],
)
def test_present_device_error_codes(session, fake_phone, code, message):
    fake_phone.present_response = (0, float(code))
    assert session.present(_stimulus()) == PresentResult(err=message, seen=None, time=None)


def test_seen_with_small_time_is_not_an_error(session, fake_phone):
    fake_phone.present_response = (1, 2.0)
    assert session.present(_stimulus()) == PresentResult(err=None, seen=True, time=2.0)


def test_present_position_has_no_float_noise(session, fake_phone):
    # 1.1 * 50 is 55.00000000000001 in binary floating point
    session.present(_stimulus(x=1.1, y=0.3))
    assert fake_phone.commands[-1] == "OPI_MONO_PRESENT L 55 15 200 1500"


def test_present_uses_foreground_and_background_levels(session, fake_phone):
    session.set_background(lum=10, fixation=None, eye="L")
    # lut[g] = g / 2: 10 cd/m2 -> 20, 100 cd/m2 -> 200
    session.present(_stimulus())
    image = np.frombuffer(fake_phone.uploads[-1].payload, dtype=np.uint8).reshape(22, 22, 3)
    assert tuple(image[11, 11]) == (200, 200, 200)
    assert tuple(image[0, 0]) == (20, 20, 20)


def test_present_image_refused(session, fake_phone):
    fake_phone.image_reply = "NO"
    result = session.present(_stimulus())
    assert result == PresentResult(err="OPI present could not load stimulus image")
    session.close()
    assert "OPI_MONO_PRESENT" not in " ".join(fake_phone.commands)
    assert fake_phone.payload_bytes == 0


@pytest.mark.parametrize(
    "field, message",
    [
        ("x", "No x coordinate in stimulus"),
        ("y", "No y coordinate in stimulus"),
        ("size", "No size in stimulus"),
        ("level", "No level in stimulus"),
        ("duration", "No duration in stimulus"),
        ("response_window", "No responseWindow in stimulus"),
        ("eye", "No eye in stimulus"),
    ],
)
def test_present_missing_field_sends_nothing(session, fake_phone, field, message):
    result = session.present(_stimulus(**{field: None}))
    assert result == PresentResult(err=message, seen=None, time=None)
    session.close()
    # only the handshake and the close reached the phone
    assert fake_phone.commands == ["OPI_GET_RES", "OPI_CLOSE"]
    assert fake_phone.uploads == []


def test_present_null_stimulus(session, fake_phone):
    assert session.present(None).err == "The NULL stimulus not supported"


@pytest.mark.parametrize(
    "kind, message",
    [
        (StimulusKind.KINETIC, "DayDream does not support kinetic stimuli (yet)"),
        (StimulusKind.TEMPORAL, "DayDream does not support temporal stimuli (yet)"),
    ],
)
def test_unsupported_kinds_need_no_device(kind, message):
    session = DaydreamSession()
    result = session.present(Stimulus(kind=kind))
    assert result == PresentResult(err=message, seen=False, time=0)


def test_present_before_initialise_raises():
    with pytest.raises(DeviceConnectionError):
        DaydreamSession().present(_stimulus())


def test_next_stimulus_is_ignored(session, fake_phone):
    result = session.present(_stimulus(), next_stimulus=_stimulus(x=-3))
    assert result.seen is True
    assert fake_phone.commands[-1] == "OPI_MONO_PRESENT L 150 150 200 1500"


# ============================================================
# set_background
# ============================================================

def test_set_background_with_cross(session, fake_phone):
    assert session.set_background(lum=10, eye="L") is None
    assert fake_phone.commands[1:] == [
        "OPI_MONO_SET_BG L 20",
        "OPI_IMAGE 21 21",
        "OPI_MONO_BG_ADD L 640 720",
    ]
    assert session.query_device()["background_left"] == 20
    assert session.query_device()["background_right"] is None

    cross = np.frombuffer(fake_phone.uploads[-1].payload, dtype=np.uint8).reshape(21, 21, 3)
    assert tuple(cross[10, 0]) == (0, 128, 0)
    assert tuple(cross[0, 10]) == (0, 128, 0)
    assert tuple(cross[0, 0]) == (0, 0, 0)


def test_set_background_right_eye_without_fixation(session, fake_phone):
    assert session.set_background(lum=50, fixation=None, eye="R") is None
    assert fake_phone.commands[1:] == ["OPI_MONO_SET_BG R 100"]
    assert session.query_device()["background_right"] == 100


def test_set_background_custom_cross(session, fake_phone):
    session.set_background(lum=10, fixation_size=5, fixation_color=(255, 0, 0), eye="L")
    assert fake_phone.commands[2] == "OPI_IMAGE 5 5"
    cross = np.frombuffer(fake_phone.uploads[-1].payload, dtype=np.uint8).reshape(5, 5, 3)
    assert tuple(cross[2, 4]) == (255, 0, 0)


def test_set_background_missing_luminance_sends_nothing(session, fake_phone):
    assert session.set_background(lum=None) == "Cannot set background to NA in opiSetBackground"
    session.close()
    assert fake_phone.commands == ["OPI_GET_RES", "OPI_CLOSE"]


def test_set_background_rejected(session, fake_phone):
    fake_phone.set_bg_reply = "ERR"
    assert session.set_background(lum=10) == "Cannot set background to 20 in opiSetBackground"
    assert session.query_device()["background_left"] is None
    assert len(fake_phone.commands) == 2


def test_set_background_fixation_upload_fails(session, fake_phone):
    fake_phone.image_reply = "NO"
    assert session.set_background(lum=10) == "Trouble loading fixation image in opiSetBackground."
    # background itself was set
    assert session.query_device()["background_left"] == 20


def test_set_background_fixation_add_fails(session, fake_phone):
    fake_phone.bg_add_reply = "NO"
    assert session.set_background(lum=10) == "Trouble adding fixation to background in opiSetBackground"


def test_set_background_color_is_ignored(session, fake_phone):
    assert session.set_background(lum=10, color="white", fixation=None) is None
    assert fake_phone.commands[-1] == "OPI_MONO_SET_BG L 20"


# ============================================================
# close / query_device
# ============================================================

def test_close_ok(session, fake_phone):
    assert session.close().ok
    assert fake_phone.commands[-1] == "OPI_CLOSE"
    assert not session.is_connected
    assert session.query_device()["socket"] is None


def test_close_bad_reply_still_closes(session, fake_phone):
    fake_phone.close_reply = "BYE"
    result = session.close()
    assert result.err == "Trouble closing daydream connection."
    assert not session.is_connected
    with pytest.raises(DeviceConnectionError):
        session.set_background(lum=10)


def test_query_device_lists_session_state(session):
    state = session.query_device()
    assert set(state) == {
        "socket",
        "endian",
        "lut",
        "degrees_to_pixels",
        "width",
        "height",
        "single_width",
        "single_height",
        "background_left",
        "background_right",
        "SEEN",
        "NOT_SEEN",
    }
    assert state["endian"] == "little"
    assert (state["SEEN"], state["NOT_SEEN"]) == (1, 0)
    assert isinstance(state["socket"], socket.socket)
    assert len(state["lut"]) == 256
