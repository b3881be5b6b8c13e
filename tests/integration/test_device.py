"""
Integration tests for MegaRoofDevice.

Tests the device end to end (decoder, cache, dispatcher and shutter
controller) with an in-memory transport standing in for the serial port.
"""

import pytest
import threading
import time

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from MegaRoofDevice import MegaRoofDevice, RoofMetadata
from roof_commands import ACK_TOKEN, OVERRIDE_COMMANDS
from roof_exceptions import (
    NotConnectedError,
    OperationTimedOutError,
    RoofConnectError,
    RoofNotImplementedError,
)
from roof_types import ShutterState


def frame(body):
    return ('$' + body + '#').encode('ascii')


def deliver_after(delay, transport, data):
    timer = threading.Timer(delay, transport.deliver, args=(data,))
    timer.daemon = True
    timer.start()
    return timer


@pytest.fixture
def device(mock_config, mock_logger, fake_transport):
    return MegaRoofDevice(mock_config, mock_logger, transport=fake_transport)


@pytest.fixture
def connected_device(device):
    device.connect()
    return device


class TestDeviceConnection:
    """Test device connection handling."""

    @pytest.mark.integration
    def test_starts_disconnected(self, device):
        assert not device.is_connected

    @pytest.mark.integration
    def test_connect_opens_configured_port(self, device, fake_transport):
        device.connect()

        assert device.is_connected
        assert fake_transport.open_calls == [('COM7', 19200)]

    @pytest.mark.integration
    def test_connect_when_connected_is_noop(self, connected_device, fake_transport):
        connected_device.connect()
        assert len(fake_transport.open_calls) == 1

    @pytest.mark.integration
    def test_connect_failure_propagates(self, device, fake_transport):
        fake_transport.fail_open = RoofConnectError("could not open port COM7")

        with pytest.raises(RoofConnectError):
            device.connect()
        assert not device.is_connected

    @pytest.mark.integration
    def test_disconnect_clears_freshness(self, connected_device, fake_transport):
        fake_transport.deliver(frame('0,1,0,0,0,12.3'))
        assert connected_device.cache.is_fresh

        connected_device.disconnect()

        assert not connected_device.is_connected
        assert not connected_device.cache.is_fresh

    @pytest.mark.integration
    def test_connected_tracks_transport(self, connected_device, fake_transport):
        """An unplugged port is reported without an explicit disconnect."""
        fake_transport.unplug()
        assert not connected_device.is_connected

    @pytest.mark.integration
    def test_commands_fail_when_disconnected(self, device):
        with pytest.raises(NotConnectedError):
            device.query('RAIN')
        with pytest.raises(NotConnectedError):
            device.open_shutter()


class TestDeviceStatus:
    """Test status frames flowing from the port into queries."""

    @pytest.mark.integration
    def test_frame_serves_status_queries(self, connected_device, fake_transport):
        fake_transport.deliver(frame('1,1,0,0,0,12.3'))

        assert connected_device.query('RAIN') == '1'
        assert connected_device.query_bool('RAIN') is True
        assert connected_device.query('SPARE') == '12.3'
        assert fake_transport.writes == []

    @pytest.mark.integration
    @pytest.mark.parametrize('token,state', [
        ('0', ShutterState.OPEN),
        ('1', ShutterState.CLOSED),
        ('2', ShutterState.OPENING),
        ('3', ShutterState.CLOSING),
        ('7', ShutterState.ERROR),
    ])
    def test_shutter_status_from_frame(self, connected_device, fake_transport, token, state):
        fake_transport.deliver(frame('0,' + token + ',0,0,0,12.3'))
        assert connected_device.shutter_status() == state

    @pytest.mark.integration
    def test_shutter_status_stale_is_error(self, connected_device, fake_transport):
        """Without fresh data the acknowledgement is not mistaken for CLOSED."""
        assert connected_device.shutter_status() == ShutterState.ERROR
        assert fake_transport.writes == [b'SHUTTERSTATUS#']

    @pytest.mark.integration
    def test_slewing(self, connected_device, fake_transport):
        fake_transport.deliver(frame('0,2,0,0,0,12.3'))
        assert connected_device.slewing is True

        fake_transport.deliver(frame('0,1,0,0,0,12.3'))
        assert connected_device.slewing is False

    @pytest.mark.integration
    def test_bad_frame_clears_freshness(self, connected_device, fake_transport, mock_logger):
        fake_transport.deliver(frame('0,1,0,0,0,12.3'))
        fake_transport.deliver(frame('0,1,0'))

        assert not connected_device.cache.is_fresh
        assert connected_device.query('RAIN') == ACK_TOKEN
        mock_logger.warning.assert_called()

    @pytest.mark.integration
    def test_noise_and_split_frames(self, connected_device, fake_transport):
        fake_transport.deliver(b'\r\nxx$0,0,1')
        fake_transport.deliver(b',0,0,12.3#\r\n')

        assert connected_device.shutter_status() == ShutterState.OPEN

    @pytest.mark.integration
    def test_status_summary(self, connected_device, fake_transport):
        fake_transport.deliver(frame('0,1,1,0,0,12.3'))
        status = connected_device.status()

        assert status['name'] == RoofMetadata.Name
        assert status['description'] == 'MegaRoof ROR Driver'
        assert status['driver_version'] == RoofMetadata.Version
        assert status['driver_info'] == RoofMetadata.Info
        assert status['port'] == 'COM7'
        assert status['connected'] is True
        assert status['fresh'] is True
        assert status['shutter'] == 'CLOSED'
        assert status['fields']['park_state'] == '1'

    @pytest.mark.integration
    def test_status_summary_before_first_frame(self, device):
        status = device.status()
        assert status['connected'] is False
        assert status['fields'] is None
        assert status['shutter'] is None


class TestDeviceShutter:
    """Test shutter operations through the full stack."""

    @pytest.mark.integration
    def test_open_succeeds_on_reply(self, connected_device, fake_transport):
        deliver_after(0.02, fake_transport, frame('0,2,0,0,0,12.3'))

        assert connected_device.open_shutter() == 1
        assert fake_transport.writes == [b'OPEN#']
        assert connected_device.shutter_status() == ShutterState.OPENING

    @pytest.mark.integration
    def test_close_times_out_without_reply(self, connected_device, mock_config):
        start = time.monotonic()
        with pytest.raises(OperationTimedOutError):
            connected_device.close_shutter()
        elapsed = time.monotonic() - start

        assert elapsed >= mock_config.poll_interval * mock_config.poll_attempts * 0.9

    @pytest.mark.integration
    def test_unplug_interrupts_wait(self, connected_device, fake_transport):
        timer = threading.Timer(0.02, fake_transport.unplug)
        timer.start()

        with pytest.raises(NotConnectedError):
            connected_device.open_shutter()

    @pytest.mark.integration
    def test_abort_written(self, connected_device, fake_transport):
        connected_device.abort()
        assert fake_transport.writes == [b'ABORT#']

    @pytest.mark.integration
    def test_send_override(self, connected_device, fake_transport):
        connected_device.send('FORCEOPEN')
        assert fake_transport.writes == [b'FORCEOPEN#']


class TestDeviceActions:
    """Test the action surface."""

    @pytest.mark.integration
    def test_supported_actions(self, device):
        assert device.supported_actions == OVERRIDE_COMMANDS

    @pytest.mark.integration
    def test_action_not_implemented(self, connected_device):
        with pytest.raises(RoofNotImplementedError):
            connected_device.action('FORCEOPEN')

    @pytest.mark.integration
    def test_raw_not_implemented(self, connected_device):
        with pytest.raises(NotImplementedError):
            connected_device.query('RAIN', raw=True)
