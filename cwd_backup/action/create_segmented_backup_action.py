from typing import Iterator

from cwd_backup.action import Action
from cwd_backup.action.helpers.segmented_archive_writer import SegmentedArchiveWriter
from cwd_backup.compressors import GzipCompressor
from cwd_backup.types.backup_config import BackupConfig
from cwd_backup.types.backup_result import BackupResult
from cwd_backup.types.entry_record import EntryRecord
from cwd_backup.types.units import ByteCount


class CreateSegmentedBackupAction(Action[BackupResult]):
	def __init__(self, backup_config: BackupConfig):
		super().__init__()
		self.backup_config = backup_config

	def __scan_entries(self) -> Iterator[EntryRecord]:
		"""
		Immediate children of the working directory only, sorted by name
		"""
		root = self.backup_config.working_directory
		for path in sorted(root.iterdir()):
			if self.backup_config.is_output_path(path):
				self.logger.info('Skipping backup output {}'.format(path))
				continue
			record = EntryRecord.of(path, root)
			if record.is_socket():
				self.logger.warning('Skipping socket {!r}, it cannot be stored in a tar archive'.format(record.name))
				continue
			yield record

	def __warn_existing_segments(self):
		existing = self.backup_config.find_existing_segments()
		if len(existing) > 0:
			self.logger.warning('Found {} existing segment file(s) with base name {!r}, the ones with a reused index will be overwritten'.format(
				len(existing), self.backup_config.base_filename,
			))
			for path in existing:
				self.logger.warning('  {}'.format(path))

	def run(self) -> BackupResult:
		segment_size = self.backup_config.segment_size
		self.logger.info('Creating backup of {} with segment size {} ({})'.format(
			self.backup_config.working_directory, segment_size, ByteCount(segment_size).auto_str(),
		))
		self.__warn_existing_segments()

		archive = SegmentedArchiveWriter(
			self.backup_config,
			GzipCompressor(self.config.compress_level),
			chunk_size=int(self.config.read_chunk_size.value),
			logger=self.logger,
		)
		entry_count = 0
		with archive:
			for record in self.__scan_entries():
				self.logger.info('Adding {!r} to the backup'.format(record.name))
				archive.add_entry(record)
				entry_count += 1

		result = BackupResult(segments=list(archive.segments), entry_count=entry_count)
		self.logger.info('Backup created: {} entries, {} segment(s), content {}, stored {}'.format(
			result.entry_count, len(result.segments),
			ByteCount(result.raw_size).auto_str(), ByteCount(result.stored_size).auto_str(),
		))
		return result
