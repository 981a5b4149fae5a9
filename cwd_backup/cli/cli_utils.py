import argparse
import functools
from importlib import metadata

from cwd_backup import constants, logger
from cwd_backup.exceptions import BackupAborted
from cwd_backup.types.units import ByteCount


@functools.lru_cache(None)
def get_version() -> str:
	try:
		return metadata.version(constants.PROGRAM_NAME)
	except metadata.PackageNotFoundError as e:
		logger.get().debug('Failed to get program version: {}'.format(e))
		return '?'


def positive_byte_count(s: str) -> ByteCount:
	"""
	argparse type for sizes like "4096", "100MiB" or "2G"
	"""
	try:
		value = ByteCount(s)
	except ValueError as e:
		raise argparse.ArgumentTypeError(str(e)) from None
	if value.value <= 0 or not float(value.value).is_integer():
		raise argparse.ArgumentTypeError('size should be a positive whole number of bytes, got {!r}'.format(s))
	return ByteCount(int(value.value))


def compress_level(s: str) -> int:
	try:
		level = int(s)
	except ValueError:
		raise argparse.ArgumentTypeError('{!r} is not an integer'.format(s)) from None
	if not 1 <= level <= 9:
		raise argparse.ArgumentTypeError('compress level should be in range [1, 9], got {}'.format(level))
	return level


def ask_confirmation(prompt: str):
	"""
	:raise BackupAborted: if the user does not answer yes
	"""
	try:
		reply = input('{} [y/N]: '.format(prompt))
	except EOFError:
		reply = ''
	if reply.strip().lower() not in ('y', 'yes'):
		raise BackupAborted('declined by user')
