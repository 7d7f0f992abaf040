"""
Logging and Error Tracking

This module provides centralized logging configuration for Waymend and an
error tracker that collects per-file problems so a pass can report them
without stopping.
"""

import logging
import logging.handlers
import os
import sys
import threading
from datetime import datetime
from typing import Optional, Dict, Any, List
import traceback
from pathlib import Path


APP_NAME = "waymend"


class WaymendLogger:
    """
    Centralized logging system for Waymend.

    Every module logs through ``logging.getLogger(__name__)``, which places it
    under the ``waymend`` logger configured here.
    """

    def __init__(self, log_dir: str = "logs", app_name: str = APP_NAME):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files
            app_name: Name of the root application logger
        """
        self.log_dir = Path(log_dir)
        self.app_name = app_name

        self.log_dir.mkdir(parents=True, exist_ok=True)

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Set up the application logger with file and console handlers.

        Args:
            level: Console logging level (default: INFO)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)

        # Prevent duplicate handlers
        if logger.handlers:
            for handler in logger.handlers:
                if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)
            return logger

        detailed_formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_formatter = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        )

        log_file = self.log_dir / f"{self.app_name}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)

        error_file = self.log_dir / f"{self.app_name}_errors.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_file,
            maxBytes=5*1024*1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)
        logger.addHandler(error_handler)

        return logger

    def log_system_info(self):
        """Log system information for debugging."""
        logger = logging.getLogger(f"{self.app_name}.system")

        logger.debug("=== Waymend started ===")
        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        logger.debug(f"Log directory: {self.log_dir.absolute()}")


class ErrorTracker:
    """
    Collects per-file problems so a pass can finish and report them at the end.

    Errors are failures that left a file unprocessed (a page that could not be
    written, an asset that could not be deleted). Warnings are completed work
    that deserves a look, such as content lost while cleaning.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.errors: List[Dict[str, Any]] = []
        self.warnings: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @staticmethod
    def _describe(entry_id: str, message: str, context: Optional[str], path: Optional[str]) -> str:
        text = f"[{entry_id}] {message}"
        if context:
            text += f" (Context: {context})"
        if path:
            text += f" (Path: {path})"
        return text

    def log_error(self,
                  error: BaseException,
                  context: Optional[str] = None,
                  path: Optional[str] = None) -> str:
        """
        Record a failure for one file.

        Args:
            error: Exception that stopped the file from being processed
            context: Pass or step that failed
            path: Mirror-relative path of the file

        Returns:
            Error ID for tracking
        """
        with self._lock:
            error_id = f"ERR_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{len(self.errors):03d}"
            self.errors.append({
                'id': error_id,
                'timestamp': datetime.now(),
                'type': type(error).__name__,
                'message': str(error),
                'context': context,
                'path': path,
            })

        self.logger.error(self._describe(error_id, f"{type(error).__name__}: {error}", context, path))
        # The exception may be reported after its handler has exited
        details = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
        self.logger.debug(f"[{error_id}] Full traceback:\n{details}")
        return error_id

    def log_warning(self,
                    message: str,
                    context: Optional[str] = None,
                    path: Optional[str] = None) -> str:
        """Record a problem that did not stop the file from being processed."""
        with self._lock:
            warning_id = f"WARN_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{len(self.warnings):03d}"
            self.warnings.append({
                'id': warning_id,
                'timestamp': datetime.now(),
                'message': message,
                'context': context,
                'path': path,
            })

        self.logger.warning(self._describe(warning_id, message, context, path))
        return warning_id

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Summarize everything recorded so far.

        Returns:
            Dictionary with totals, counts per exception type and the paths
            that failed
        """
        type_counts: Dict[str, int] = {}
        for error in self.errors:
            type_counts[error['type']] = type_counts.get(error['type'], 0) + 1

        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'error_types': type_counts,
            'failed_paths': [error['path'] for error in self.errors if error['path']],
        }


def initialize_logging(log_dir: str = "logs", level: int = logging.INFO) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        log_dir: Directory for log files
        level: Console logging level

    Returns:
        The configured application logger
    """
    waymend_logger = WaymendLogger(log_dir)
    logger = waymend_logger.setup_logger(level)
    waymend_logger.log_system_info()
    return logger
