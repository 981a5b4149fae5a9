import functools
import logging
import sys

from cwd_backup import constants


def __create_logger() -> logging.Logger:
	from cwd_backup.utils.log_utils import LOG_FORMATTER
	logger = logging.Logger(constants.PROGRAM_ID)

	# warnings and errors go to stderr, everything below to stdout
	out_handler = logging.StreamHandler(sys.stdout)
	out_handler.addFilter(lambda record: record.levelno < logging.WARNING)
	err_handler = logging.StreamHandler(sys.stderr)
	err_handler.setLevel(logging.WARNING)

	for handler in [out_handler, err_handler]:
		handler.setFormatter(LOG_FORMATTER)
		logger.addHandler(handler)
	return logger


@functools.lru_cache
def get() -> logging.Logger:
	from cwd_backup.utils.log_utils import get_log_level
	logger = __create_logger()
	logger.setLevel(get_log_level())
	return logger
