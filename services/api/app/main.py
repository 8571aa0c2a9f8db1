from __future__ import annotations

from migrator.logging import configure_logging
from migrator.observability import setup_tracing
from migrator.settings import SETTINGS
from services.api.app.factory import create_app


configure_logging(SETTINGS.log_level)
setup_tracing(service_name="api")
app = create_app()
