import contextlib
import copy
import dataclasses
import tarfile
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional

from typing_extensions import Self

from cwd_backup import logger
from cwd_backup.compressors import Compressor
from cwd_backup.types.entry_record import EntryRecord
from cwd_backup.types.segment_info import SegmentInfo

TarMemberFilter = Callable[[tarfile.TarInfo], Optional[tarfile.TarInfo]]


@dataclasses.dataclass(frozen=True)
class PendingEntry:
	"""
	Header template of a regular file whose content is being streamed.
	Every chunk of the file becomes a tar member built from this template
	"""
	name: str
	template: tarfile.TarInfo

	@classmethod
	def of(cls, record: EntryRecord) -> Self:
		return cls(record.name, record.to_tar_info())

	def make_chunk_info(self, size: int) -> tarfile.TarInfo:
		info = copy.copy(self.template)
		info.size = size
		return info


class SegmentWriter:
	"""
	One segment file: file --> gzip stream --> tar builder

	Content goes to a temporary file, which is renamed to the segment path after a clean close
	"""

	def __init__(self, index: int, path: Path, temp_path: Path, compressor: Compressor):
		self.logger = logger.get()
		self.index = index
		self.path = path
		self.temp_path = temp_path
		self.bytes_written = 0
		self.__closed = False
		self.__es = contextlib.ExitStack()

		try:
			self.__bypass_writer, f_compressed = self.__es.enter_context(compressor.open_compressed_bypassed(self.temp_path))
			self.__tar: tarfile.TarFile = self.__es.enter_context(tarfile.open(fileobj=f_compressed, mode='w:', format=tarfile.GNU_FORMAT))
		except Exception:
			self.abort()
			raise

	def __ensure_open(self):
		if self.__closed:
			raise RuntimeError('segment #{} at {} is already closed'.format(self.index, self.path))

	def append_chunk(self, entry: PendingEntry, data: bytes):
		self.__ensure_open()
		self.__tar.addfile(tarinfo=entry.make_chunk_info(len(data)), fileobj=BytesIO(data))
		self.bytes_written += len(data)

	def append_tree(self, path: Path, arcname: str, member_filter: Optional[TarMemberFilter] = None):
		self.__ensure_open()
		self.__tar.add(path, arcname=arcname, recursive=True, filter=member_filter)

	def append_other(self, path: Path, arcname: str):
		self.__ensure_open()
		self.__tar.add(path, arcname=arcname, recursive=False)

	def close(self) -> SegmentInfo:
		"""
		Writes the tar trailer, flushes the gzip stream and moves the file to its final path
		"""
		self.__ensure_open()
		self.__closed = True
		try:
			self.__es.close()
			self.temp_path.replace(self.path)
		except Exception:
			self.__remove_temp_file()
			raise

		return SegmentInfo(
			index=self.index,
			path=self.path,
			raw_size=self.bytes_written,
			stored_size=self.__bypass_writer.get_write_len(),
		)

	def abort(self):
		"""
		Releases the handles and removes the incomplete segment file
		"""
		if self.__closed:
			return
		self.__closed = True
		try:
			self.__es.close()
		except Exception as e:
			self.logger.warning('Failed to close aborted segment #{} at {}: {}'.format(self.index, self.temp_path, e))
		self.__remove_temp_file()

	def __remove_temp_file(self):
		try:
			self.temp_path.unlink(missing_ok=True)
		except OSError as e:
			self.logger.warning('Failed to remove incomplete segment file {}: {}'.format(self.temp_path, e))
