# =============================================================================
# pos_core/errors/handlers.py
# Error Handling Utilities for the Vitana POS
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar, Any
import streamlit as st

from pos_core.logging import get_logger
from .exceptions import GatewayError, POSError

logger = get_logger(__name__)

T = TypeVar("T")

OFFLINE_NOTICE = "Sem conexão com o servidor. Os dados ficam salvos e serão sincronizados."


def _describe(error: Exception, user_message: Optional[str]) -> tuple:
    """(message, code, details, recoverable) for any exception."""
    if isinstance(error, POSError):
        return user_message or error.message, error.code, error.details, error.recoverable
    return user_message or str(error), "UNKNOWN", {"traceback": traceback.format_exc()}, True


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Log an error and tell the cashier about it.

    A retryable backend failure is not an error for the POS: the operation
    is already stored locally, so it is logged at WARNING and shown as a
    notice instead of an error box.

    Args:
        error: The exception to handle
        show_user_message: Whether to render feedback in Streamlit
        log_error: Whether to log the error
        user_message: Message shown instead of the exception's own
    """
    message, code, details, recoverable = _describe(error, user_message)
    offline = isinstance(error, GatewayError) and error.retryable

    if log_error:
        if offline:
            logger.warning(f"[{code}] {message}", extra={"details": details})
        else:
            logger.error(f"[{code}] {message}", extra={"details": details}, exc_info=True)

    if not show_user_message:
        return

    if offline:
        st.warning(OFFLINE_NOTICE)
    elif recoverable:
        st.error(f"Erro: {message}")
    else:
        st.error(f"Erro crítico: {message}. Contate o suporte.")

    if details and st.session_state.get("debug_mode", False):
        with st.expander("Detalhes do erro", expanded=False):
            st.json(details)


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Call ``func`` and route any exception through handle_error.

    Usage:
        restored = safe_execute(
            service.retry_dropped, item_id, record_type,
            default=False,
            error_message="Falha ao reenviar operação",
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager around a cashier action.

    Usage:
        with ErrorContext("Registrando venda"):
            sales_state.add_sale(cart)
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_success = show_success
        self.success_message = success_message

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            if self.show_success:
                st.success(self.success_message or f"{self.operation} concluído")
            return False

        user_message = None if isinstance(exc_val, POSError) else f"Erro durante: {self.operation}"
        handle_error(exc_val, user_message=user_message)
        return self.recoverable


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
    log: bool = True,
):
    """
    Decorator for Streamlit button callbacks.

    The wrapped callback never raises; failures are logged, shown through
    handle_error and replaced by ``default_return``.

    Usage:
        @error_boundary(default_return=False, error_message="Falha ao sincronizar")
        def on_force_sync(service):
            return service.force_sync()
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                handle_error(e, log_error=log, user_message=error_message)
                return default_return

        return wrapper

    return decorator
