import argparse
from typing import List, Optional

from cwd_backup.action.create_segmented_backup_action import CreateSegmentedBackupAction
from cwd_backup.cli import cli_utils
from cwd_backup.cli.return_codes import ErrorReturnCodes
from cwd_backup.config.config import Config, set_config_instance
from cwd_backup.exceptions import BackupAborted, ConfigurationError, CwdBackupError
from cwd_backup.logger import get as get_logger
from cwd_backup.types.backup_config import BackupConfig
from cwd_backup.types.run_context import RunContext
from cwd_backup.types.units import ByteCount
from cwd_backup.utils import log_utils

__all__ = ['cli_entry']


def __prepare_logger():
	logger = get_logger()
	for handler in logger.handlers:
		handler.setFormatter(log_utils.LOG_FORMATTER_NO_FUNC)


__prepare_logger()


class CliEntrypoint:
	def __init__(self):
		self.logger = get_logger()

	@classmethod
	def build_parser(cls) -> argparse.ArgumentParser:
		default_config = Config.get_default()
		parser = argparse.ArgumentParser(
			description='cwd-backup v{}: back up the current working directory into segmented .tar.gz files next to the home directory'.format(cli_utils.get_version()),
			formatter_class=argparse.ArgumentDefaultsHelpFormatter,
		)
		parser.add_argument('-s', '--segment-size', type=cli_utils.positive_byte_count, default=None, help='Content size after which a new segment is started, e.g. "4096", "100MiB", "2G". If not given, the BACKUP_SEGMENT_SIZE environment variable is used, or {} if that is not a valid byte count'.format(default_config.default_segment_size))
		parser.add_argument('-y', '--yes', action='store_true', help='Do not ask for confirmation before creating the backup')
		parser.add_argument('--chunk-size', type=cli_utils.positive_byte_count, default=default_config.read_chunk_size, help='Size of each read from a file')
		parser.add_argument('--compress-level', type=cli_utils.compress_level, default=default_config.compress_level, help='gzip compress level, 1 - 9')
		parser.add_argument('--debug', action='store_true', help='Enable debug logging')
		return parser

	def __init_config(self, args: argparse.Namespace):
		config = Config.get_default()
		config.debug = args.debug
		config.read_chunk_size = ByteCount(args.chunk_size)
		config.compress_level = args.compress_level
		set_config_instance(config)

	def __resolve(self, args: argparse.Namespace) -> BackupConfig:
		override = str(int(args.segment_size.value)) if args.segment_size is not None else None
		ctx = RunContext.from_environment(segment_size_override=override)
		try:
			return BackupConfig.resolve(ctx)
		except ConfigurationError as e:
			self.logger.error('Configuration error: {}'.format(e))
			ErrorReturnCodes.configuration_error.sys_exit()

	def main(self, argv: Optional[List[str]] = None):
		args = self.build_parser().parse_args(argv)
		self.__init_config(args)

		backup_config = self.__resolve(args)
		self.logger.info('Current working directory: {}'.format(backup_config.working_directory))
		self.logger.info('Home directory: {}'.format(backup_config.home_directory))
		self.logger.info('Backup base filename: {}'.format(backup_config.base_filename))
		self.logger.info('Using segment size: {} bytes ({})'.format(backup_config.segment_size, ByteCount(backup_config.segment_size).auto_str()))

		try:
			if not args.yes:
				cli_utils.ask_confirmation('Please check the info above, proceed?')
		except BackupAborted:
			self.logger.info('Backup creation aborted')
			return

		try:
			result = CreateSegmentedBackupAction(backup_config).run()
		except (OSError, CwdBackupError) as e:
			self.logger.error('Error creating backup: {}'.format(e))
			ErrorReturnCodes.action_failed.sys_exit()

		for segment in result.segments:
			self.logger.info('  {} ({})'.format(segment.path, ByteCount(segment.stored_size).auto_str()))
		self.logger.info('Backup created successfully')


def cli_entry():
	CliEntrypoint().main()
