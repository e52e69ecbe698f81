from .sync_indicator import (
    render_sync_indicator,
    force_sync,
    status_text,
    status_color,
    format_last_sync,
    dropped_table,
)

__all__ = [
    "render_sync_indicator",
    "force_sync",
    "status_text",
    "status_color",
    "format_last_sync",
    "dropped_table",
]
