# probate_filing_service/app/__init__.py
import logging

logger = logging.getLogger(__name__)
logger.info("Probate Filing App Initialized")
