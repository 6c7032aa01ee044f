from __future__ import annotations

import logging

from shop_assistant.core.security import redact_secrets


class RedactionFilter(logging.Filter):
    """Log filter that masks API keys before records reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Render first so numeric placeholders still see their original args.
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


def setup_logging(level: str) -> None:
    """Configure application logging with secret redaction."""

    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # basicConfig is a no-op once the root logger has handlers.
    logging.getLogger().setLevel(resolved)
    # Logger filters do not see records propagated from child loggers, handler filters do.
    for handler in logging.getLogger().handlers:
        if not any(isinstance(item, RedactionFilter) for item in handler.filters):
            handler.addFilter(RedactionFilter())
