"""vdr_api."""

from .monitoring.logger import configure_logger

# Console logging until create_app() reconfigures with the loaded settings
configure_logger()
