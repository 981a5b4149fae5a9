import enum
import logging
import tarfile
from typing import List, Optional

from cwd_backup.action.helpers.segment_writer import SegmentWriter, PendingEntry
from cwd_backup.compressors import Compressor
from cwd_backup.types.backup_config import BackupConfig
from cwd_backup.types.entry_record import EntryRecord
from cwd_backup.types.segment_info import SegmentInfo
from cwd_backup.types.units import ByteCount


class SegmentedArchiveWriter:
	"""
	Streams entries into a sequence of segments, ``{base_filename}.part0``, ``.part1``, ...

	A new segment is started when the content bytes of the current one reach the segment size.
	The check happens after every chunk of a regular file, so a file can span several segments.
	Directories are added as a whole into the current segment, without any size check inside
	"""

	class State(enum.Enum):
		no_segment = enum.auto()
		segment_open = enum.auto()
		closed = enum.auto()

	def __init__(self, backup_config: BackupConfig, compressor: Compressor, *, chunk_size: int, logger: logging.Logger):
		if chunk_size <= 0:
			raise ValueError('chunk_size should be positive, got {}'.format(chunk_size))
		self.backup_config = backup_config
		self.compressor = compressor
		self.chunk_size = chunk_size
		self.logger = logger
		self.state = self.State.no_segment
		self.segments: List[SegmentInfo] = []
		self.__writer: Optional[SegmentWriter] = None

	def __enter__(self) -> 'SegmentedArchiveWriter':
		self.open()
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		if exc_type is None:
			self.close()
		else:
			self.abort()

	# ==================== Segments ====================

	def __open_segment(self, index: int):
		path = self.backup_config.segment_path(index)
		self.logger.info('Writing segment #{} to {}'.format(index, path))
		self.__writer = SegmentWriter(index, path, self.backup_config.segment_temp_path(index), self.compressor)
		self.state = self.State.segment_open

	def __close_segment(self):
		writer, self.__writer = self.__writer, None
		info = writer.close()
		self.segments.append(info)
		self.logger.info('Segment #{} finished, content {}, stored {}'.format(
			info.index, ByteCount(info.raw_size).auto_str(), ByteCount(info.stored_size).auto_str(),
		))

	def __current(self) -> SegmentWriter:
		if self.state != self.State.segment_open or self.__writer is None:
			raise RuntimeError('no segment is open, current state: {}'.format(self.state.name))
		return self.__writer

	def __rollover(self):
		next_index = self.__current().index + 1
		self.logger.debug('Segment #{} reached {} bytes, rolling over'.format(next_index - 1, self.__current().bytes_written))
		self.__close_segment()
		self.__open_segment(next_index)

	def open(self):
		if self.state != self.State.no_segment:
			raise RuntimeError('archive writer has already been opened, current state: {}'.format(self.state.name))
		self.__open_segment(0)

	def close(self) -> List[SegmentInfo]:
		self.__current()
		try:
			self.__close_segment()
		finally:
			self.state = self.State.closed
		return list(self.segments)

	def abort(self):
		if self.__writer is not None:
			writer, self.__writer = self.__writer, None
			writer.abort()
		self.state = self.State.closed

	# ==================== Entries ====================

	def add_entry(self, record: EntryRecord):
		writer = self.__current()
		if record.is_file():
			self.__add_file(record)
		elif record.is_dir():
			writer.append_tree(record.path, record.name, member_filter=self.__filter_tree_member)
		elif record.is_socket():
			self.logger.warning('Skipping socket {!r}, it cannot be stored in a tar archive'.format(record.name))
		else:
			writer.append_other(record.path, record.name)

	def __add_file(self, record: EntryRecord):
		entry = PendingEntry.of(record)
		chunk_count = 0
		with open(record.path, 'rb') as f:
			while chunk := f.read(self.chunk_size):
				self.__current().append_chunk(entry, chunk)
				chunk_count += 1
				if self.__current().bytes_written >= self.backup_config.segment_size:
					self.__rollover()

		if chunk_count == 0:
			# keep empty files in the archive
			self.__current().append_chunk(entry, b'')
		self.logger.debug('Added file {!r} in {} chunk(s)'.format(record.name, chunk_count))

	def __filter_tree_member(self, info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
		path = self.backup_config.working_directory / info.name
		if self.backup_config.is_output_path(path):
			self.logger.info('Skipping backup output {}'.format(path))
			return None
		self.logger.debug('add {} {!r} to tarfile'.format('dir' if info.isdir() else 'file', info.name))
		return info
