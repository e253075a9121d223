import logging

from sizefit.logger import LOGGER_NAME, close_logging, setup_logging


def test_log_file_gets_header_and_debug_records(tmp_path):
    log_file = tmp_path / "sizefit.log"

    logger = setup_logging(log_file, verbose=False)
    logging.getLogger("sizefit.compression.engine").debug("trial record")
    close_logging()

    content = log_file.read_text(encoding="utf-8")
    assert "SIZEFIT - LOG FILE" in content
    assert "trial record" in content
    assert logger.name == LOGGER_NAME


def test_setup_is_idempotent(tmp_path):
    setup_logging()
    logger = setup_logging()

    assert len(logger.handlers) == 1
    close_logging()
    assert logger.handlers == []
