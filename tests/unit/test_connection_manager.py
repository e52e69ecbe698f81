# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for ConnectionManager
# =============================================================================

from unittest.mock import MagicMock

from conftest import FakeGateway
from pos_core.offline.connection_manager import ConnectionManager, ConnectionStatus


class TestConnectionChecks:
    """Test status detection through the gateway health check"""

    def test_initial_status_unknown_is_not_online(self):
        manager = ConnectionManager(FakeGateway())

        assert manager.status == ConnectionStatus.UNKNOWN
        assert not manager.is_online

    def test_healthy_backend_is_online(self):
        manager = ConnectionManager(FakeGateway())

        manager.check_connection()

        assert manager.is_online
        assert manager.state.last_online is not None

    def test_unreachable_backend_is_offline(self):
        gateway = FakeGateway()
        gateway.unreachable = True
        manager = ConnectionManager(gateway)

        manager.check_connection()
        manager.check_connection()

        assert manager.is_offline
        assert manager.state.consecutive_failures == 2
        assert manager.state.error_message == "connection refused"

    def test_force_check_picks_up_recovery(self):
        gateway = FakeGateway()
        gateway.unreachable = True
        manager = ConnectionManager(gateway)
        manager.check_connection()

        gateway.unreachable = False
        state = manager.force_check()

        assert state.came_online
        assert state.consecutive_failures == 0

    def test_initialize_without_monitoring(self):
        manager = ConnectionManager(FakeGateway())

        manager.initialize(start_monitoring=False)

        assert manager.is_online
        assert manager._monitor_thread is None


class TestConnectionCallbacks:
    """Test change notifications"""

    def test_callback_on_change_only(self):
        manager = ConnectionManager(FakeGateway())
        callback = MagicMock()
        manager.register_callback(callback)

        manager.check_connection()
        manager.check_connection()

        assert callback.call_count == 1
        assert callback.call_args.args[0].came_online

    def test_offline_to_online_transition(self):
        manager = ConnectionManager()
        seen = []
        manager.register_callback(lambda state: seen.append((state.previous_status, state.status)))

        manager.set_offline()
        manager.set_online()

        assert seen == [
            (ConnectionStatus.UNKNOWN, ConnectionStatus.OFFLINE),
            (ConnectionStatus.OFFLINE, ConnectionStatus.ONLINE),
        ]

    def test_failing_callback_does_not_break_others(self):
        manager = ConnectionManager()
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        manager.register_callback(broken)
        manager.register_callback(healthy)

        manager.set_online()

        healthy.assert_called_once()

    def test_unregister_callback(self):
        manager = ConnectionManager()
        callback = MagicMock()
        manager.register_callback(callback)
        manager.unregister_callback(callback)

        manager.set_online()

        callback.assert_not_called()


class TestForcedOffline:
    """Test manual offline mode"""

    def test_force_offline_ignores_health_checks(self):
        manager = ConnectionManager(FakeGateway())
        manager.check_connection()

        manager.force_offline()
        manager.check_connection()

        assert manager.is_offline
        assert manager.get_status_display()["forced"] is True

    def test_set_online_releases_forced_mode(self):
        manager = ConnectionManager(FakeGateway())
        manager.force_offline()

        manager.set_online()

        assert manager.is_online
        assert manager.get_status_display()["status"] == "online"
