# identity/db/__init__.py
import os
from identity.config import LOG_LEVEL
from identity.utils.logging_config import setup_logging
from identity.utils.log_management import setup_file_logging

# Initialize the db logger
logger = setup_logging('identity_db', log_level=LOG_LEVEL, log_format='json')

# Add file logging if we're in production
if os.getenv('ENVIRONMENT', 'development') == 'production':
    setup_file_logging(
        logger,
        log_dir="/app/logs/identity_db",
        max_bytes=10 * 1024 * 1024,  # 10MB
        backup_count=5,
        when='d',
        interval=1
    )

# Export logger for use in other modules
__all__ = ['logger']
