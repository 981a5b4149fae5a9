import contextlib
import gzip
from abc import ABC, abstractmethod
from typing import BinaryIO, ContextManager, Tuple

from cwd_backup.utils.bypass_io import BypassWriter
from cwd_backup.utils.path_like import PathLike


class Compressor(ABC):
	@contextlib.contextmanager
	def open_compressed_bypassed(self, target_path: PathLike) -> ContextManager[Tuple[BypassWriter, BinaryIO]]:
		"""
		(writer) --[compress]--> target_path
		                      ^- bypassed
		"""
		with open(target_path, 'wb') as f:
			writer = BypassWriter(f)
			with self.compress_stream(writer) as f_compressed:
				yield writer, f_compressed

	@abstractmethod
	def compress_stream(self, f_out: BinaryIO) -> ContextManager[BinaryIO]:
		"""
		Open a stream for compressing write
		"""
		...


class GzipCompressor(Compressor):
	def __init__(self, compress_level: int = 6):
		if not 1 <= compress_level <= 9:
			raise ValueError('bad gzip compress level {}'.format(compress_level))
		self.compress_level = compress_level

	@contextlib.contextmanager
	def compress_stream(self, f_out: BinaryIO) -> ContextManager[BinaryIO]:
		# no file name in the gzip header, or it would be the name of the temporary segment file
		with gzip.GzipFile(filename='', mode='wb', fileobj=f_out, compresslevel=self.compress_level) as compressed_out:
			yield compressed_out
