"""
Logging setup tests.
"""
from loguru import logger

from app.utils.logger import REDACTED, setup_logger


def test_api_keys_are_redacted(settings):
    setup_logger(settings)
    messages = []
    sink = logger.add(messages.append, format="{message}", level="DEBUG")
    try:
        logger.warning("Klaviyo request with key pk_test failed")
        logger.info("Triple Whale key tw_test accepted")
    finally:
        logger.remove(sink)

    assert len(messages) == 2
    assert all("pk_test" not in m and "tw_test" not in m for m in messages)
    assert REDACTED in messages[0]


def test_file_sinks_disabled(settings, tmp_path):
    settings.log_dir = str(tmp_path)
    setup_logger(settings)
    logger.error("nothing written to disk")
    assert list(tmp_path.iterdir()) == []
