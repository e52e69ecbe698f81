# =============================================================================
# tests/unit/test_errors.py
# Unit Tests for the Exception Hierarchy and Handlers
# =============================================================================

import logging

import pytest

from pos_core.errors import (
    ConfigurationError,
    ErrorContext,
    GatewayError,
    NetworkUnreachableError,
    POSError,
    RecordValidationError,
    ServerRejectedError,
    StorageError,
    UnknownRecordTypeError,
    UnsupportedActionError,
    error_boundary,
    handle_error,
    safe_execute,
)
from pos_core.errors.handlers import OFFLINE_NOTICE


class TestExceptions:
    """Test codes, details and retry classification"""

    @pytest.mark.parametrize("error,code", [
        (RecordValidationError("x", field="id"), "REC_001"),
        (UnknownRecordTypeError("customers"), "REC_002"),
        (UnsupportedActionError("sales", "delete"), "REC_003"),
        (StorageError("x", key="k"), "STORE_001"),
        (GatewayError("x"), "SYNC_000"),
        (NetworkUnreachableError("x"), "SYNC_001"),
        (ServerRejectedError("x", status_code=400), "SYNC_002"),
        (ConfigurationError("x"), "CONFIG_001"),
    ])
    def test_codes(self, error, code):
        assert error.code == code
        assert isinstance(error, POSError)

    def test_to_dict(self):
        error = UnsupportedActionError("sales", "delete")

        assert error.to_dict() == {
            "error_type": "UnsupportedActionError",
            "code": "REC_003",
            "message": "Action 'delete' is not supported for 'sales'",
            "details": {"record_type": "sales", "action": "delete"},
            "recoverable": True,
        }

    def test_str_includes_details(self):
        assert str(StorageError("write failed", key="sync_queue")) == (
            "[STORE_001] write failed | Details: {'key': 'sync_queue'}"
        )

    @pytest.mark.parametrize("status,retryable", [
        (None, False),
        (400, False),
        (401, False),
        (409, False),
        (429, True),
        (500, True),
        (503, True),
    ])
    def test_rejection_retryable(self, status, retryable):
        assert ServerRejectedError("x", status_code=status).retryable is retryable

    def test_network_errors_are_retryable(self):
        assert NetworkUnreachableError("down", endpoint="sales").retryable
        assert NetworkUnreachableError("down", endpoint="sales").details == {"endpoint": "sales"}


class TestHandlers:
    """Test user feedback through Streamlit"""

    def test_handle_error_shows_message(self, mock_streamlit):
        handle_error(RecordValidationError("businessId is required"))

        mock_streamlit.error.assert_called_once_with("Erro: businessId is required")

    def test_handle_error_critical(self, mock_streamlit):
        handle_error(ConfigurationError("api_url must not be empty"))

        message = mock_streamlit.error.call_args.args[0]
        assert message.startswith("Erro crítico")

    def test_handle_error_debug_details(self, mock_streamlit):
        mock_streamlit.session_state["debug_mode"] = True

        handle_error(StorageError("x", key="k"))

        mock_streamlit.json.assert_called_once_with({"key": "k"})

    def test_handle_error_silent(self, mock_streamlit):
        handle_error(ValueError("boom"), show_user_message=False)

        mock_streamlit.error.assert_not_called()

    def test_safe_execute_returns_default(self, mock_streamlit):
        def broken():
            raise RuntimeError("boom")

        assert safe_execute(broken, default=[], error_message="Falha") == []
        mock_streamlit.error.assert_called_once_with("Erro: Falha")

    def test_safe_execute_reraise(self, mock_streamlit):
        def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            safe_execute(broken, reraise=True)

    def test_error_context_suppresses_recoverable(self, mock_streamlit):
        with ErrorContext("Registrando venda"):
            raise RuntimeError("boom")

        mock_streamlit.error.assert_called_once_with("Erro: Erro durante: Registrando venda")

    def test_error_context_reraises_unrecoverable(self, mock_streamlit):
        with pytest.raises(RuntimeError):
            with ErrorContext("Registrando venda", recoverable=False):
                raise RuntimeError("boom")

    def test_error_context_success_message(self, mock_streamlit):
        with ErrorContext("Salvar", show_success=True):
            pass

        mock_streamlit.success.assert_called_once_with("Salvar concluído")

    def test_error_boundary(self, mock_streamlit):
        @error_boundary(default_return=False, error_message="Falha na sincronização")
        def sync():
            raise RuntimeError("boom")

        assert sync() is False
        mock_streamlit.error.assert_called_once_with("Erro: Falha na sincronização")

    def test_error_boundary_passes_result_through(self, mock_streamlit):
        @error_boundary(default_return=False)
        def sync():
            return True

        assert sync() is True
        mock_streamlit.error.assert_not_called()


class TestOfflineNotice:
    """Test that a backend outage is a notice, not an error"""

    def test_unreachable_server_shows_warning(self, mock_streamlit):
        handle_error(NetworkUnreachableError("down", endpoint="sales"))

        mock_streamlit.warning.assert_called_once_with(OFFLINE_NOTICE)
        mock_streamlit.error.assert_not_called()

    def test_server_error_is_retryable(self, mock_streamlit):
        handle_error(ServerRejectedError("bad gateway", status_code=502))

        mock_streamlit.warning.assert_called_once_with(OFFLINE_NOTICE)

    def test_rejected_payload_is_still_an_error(self, mock_streamlit):
        handle_error(ServerRejectedError("bad request", status_code=400))

        mock_streamlit.error.assert_called_once_with("Erro: bad request")
        mock_streamlit.warning.assert_not_called()

    def test_outage_logged_as_warning(self, mock_streamlit, caplog):
        with caplog.at_level(logging.WARNING, logger="pos_core.errors.handlers"):
            handle_error(NetworkUnreachableError("down"), show_user_message=False)

        assert [r.levelno for r in caplog.records] == [logging.WARNING]

    def test_error_boundary_on_outage(self, mock_streamlit):
        @error_boundary(default_return=False, error_message="Falha na sincronização")
        def sync():
            raise NetworkUnreachableError("down")

        assert sync() is False
        mock_streamlit.warning.assert_called_once_with(OFFLINE_NOTICE)
