"""Tests de la tabla de reglas de alertas (límites y compuertas)."""

import pytest

from guardian_api.core.domain import Device, DeviceStatus, Severity
from guardian_api.pipelines.alerts.alert_rules import classify


@pytest.fixture
def device() -> Device:
    return Device(id=1, serial="W001", tenant_id=7, status=DeviceStatus.ONLINE, name="Reloj abuela")


@pytest.fixture
def unnamed_device() -> Device:
    return Device(id=2, serial="CAM001", tenant_id=7, status=DeviceStatus.ONLINE)


class TestHeartRate:
    @pytest.mark.parametrize("hr", [50, 120, 80])
    def test_in_range_does_not_alert(self, device, hr):
        assert classify("heart_rate_abnormal", {"heart_rate": hr}, device) is None

    @pytest.mark.parametrize("hr", [49, 121, 30.5])
    def test_out_of_range_alerts_high(self, device, hr):
        decision = classify("heart_rate_abnormal", {"heart_rate": hr}, device)
        assert decision is not None
        assert decision.severity is Severity.HIGH
        assert str(hr) in decision.message

    @pytest.mark.parametrize("payload", [{}, {"heart_rate": "130"}, {"heart_rate": None}, {"heart_rate": True}])
    def test_missing_or_non_numeric_never_alerts(self, device, payload):
        assert classify("heart_rate_abnormal", payload, device) is None


class TestBattery:
    def test_threshold_is_inclusive(self, device):
        decision = classify("low_battery", {"battery_level": 20}, device)
        assert decision is not None
        assert decision.severity is Severity.LOW
        assert "20%" in decision.message

    def test_above_threshold(self, device):
        assert classify("low_battery", {"battery_level": 21}, device) is None

    def test_missing_level(self, device):
        assert classify("low_battery", {}, device) is None


class TestGeofence:
    def test_exit_alerts(self, device):
        decision = classify("fence_violation", {"violation_type": "exit"}, device)
        assert decision is not None
        assert decision.severity is Severity.HIGH

    def test_enter_does_not_alert(self, device):
        assert classify("fence_violation", {"violation_type": "enter"}, device) is None
        assert classify("fence_violation", {}, device) is None


class TestUnconditional:
    @pytest.mark.parametrize(
        "event_type",
        ["emergency_button", "fall_detected", "fall_detection", "location_sos", "sos_alert", "stranger_detected"],
    )
    def test_critical_types(self, device, event_type):
        decision = classify(event_type, {}, device)
        assert decision is not None
        assert decision.severity is Severity.CRITICAL

    def test_device_offline_is_low(self, device):
        decision = classify("device_offline", None, device)
        assert decision is not None
        assert decision.severity is Severity.LOW

    def test_unlisted_type_never_alerts(self, device):
        assert classify("door_opened", {"heart_rate": 200}, device) is None


class TestMessages:
    def test_uses_device_name(self, device):
        decision = classify("fall_detection", {}, device)
        assert "Reloj abuela" in decision.message

    def test_falls_back_to_serial(self, unnamed_device):
        decision = classify("fall_detection", {}, unnamed_device)
        assert "CAM001" in decision.message

    def test_listed_type_without_template_uses_generic(self, unnamed_device):
        decision = classify("stranger_detected", {}, unnamed_device)
        assert "CAM001" in decision.message
        assert "stranger_detected" in decision.message
