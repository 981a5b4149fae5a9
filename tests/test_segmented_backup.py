import collections
import datetime
import os
import random
import socket
import tarfile
import tempfile
import unittest
from pathlib import Path
from typing import Dict, List, Tuple
from unittest import mock

from cwd_backup import logger
from cwd_backup.action.create_segmented_backup_action import CreateSegmentedBackupAction
from cwd_backup.action.helpers.segment_writer import PendingEntry
from cwd_backup.action.helpers.segmented_archive_writer import SegmentedArchiveWriter
from cwd_backup.compressors import GzipCompressor
from cwd_backup.config.config import Config, set_config_instance, reset_config_instance
from cwd_backup.types.backup_config import BackupConfig
from cwd_backup.types.backup_result import BackupResult
from cwd_backup.types.entry_record import EntryRecord
from cwd_backup.types.run_context import RunContext
from cwd_backup.types.units import ByteCount

MiB = 1024 ** 2


def read_segments(paths: List[Path]) -> List[List[Tuple[tarfile.TarInfo, bytes]]]:
	segments = []
	for path in paths:
		members = []
		with tarfile.open(path, mode='r:gz') as tar:
			for member in tar.getmembers():
				data = b''
				if member.isfile():
					with tar.extractfile(member) as f:
						data = f.read()
				members.append((member, data))
		segments.append(members)
	return segments


def join_contents(segments: List[List[Tuple[tarfile.TarInfo, bytes]]]) -> Dict[str, bytes]:
	contents: Dict[str, bytes] = collections.defaultdict(bytes)
	for members in segments:
		for member, data in members:
			if member.isfile():
				contents[member.name] += data
	return dict(contents)


def bind_unix_socket(path: Path):
	sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
	try:
		sock.bind(str(path))
	finally:
		sock.close()


class SegmentedBackupTestCase(unittest.TestCase):
	def setUp(self):
		self.__temp_dir = tempfile.TemporaryDirectory()
		self.temp_path = Path(self.__temp_dir.name)
		self.home_path = self.temp_path / 'home' / 'u'
		self.cwd_path = self.home_path / 'proj'
		self.cwd_path.mkdir(parents=True)
		self.rnd = random.Random(1234)

		config = Config.get_default()
		config.compress_level = 1
		set_config_instance(config)

	def tearDown(self):
		reset_config_instance()
		self.__temp_dir.cleanup()

	# ==================== Utils ====================

	def set_chunk_size(self, chunk_size: int):
		config = Config.get_default()
		config.compress_level = 1
		config.read_chunk_size = ByteCount(chunk_size)
		set_config_instance(config)

	def make_backup_config(self, segment_size: int, cwd: Path = None) -> BackupConfig:
		return BackupConfig.resolve(RunContext(
			working_directory=cwd or self.cwd_path,
			home_directory=str(self.home_path),
			segment_size_override=str(segment_size),
			date=datetime.date(2024, 1, 15),
		))

	def create_file(self, rel_path: str, size: int) -> bytes:
		path = self.cwd_path / rel_path
		path.parent.mkdir(parents=True, exist_ok=True)
		data = os.urandom(size)
		path.write_bytes(data)
		return data

	def list_output_files(self, backup_config: BackupConfig) -> List[str]:
		return sorted(p.name for p in backup_config.find_existing_segments())

	def check_segments_on_disk(self, backup_config: BackupConfig, result: BackupResult):
		self.assertEqual(list(range(len(result.segments))), [seg.index for seg in result.segments])
		for seg in result.segments:
			self.assertEqual(backup_config.segment_path(seg.index), seg.path)
			self.assertTrue(seg.path.is_file())
			self.assertEqual(seg.path.stat().st_size, seg.stored_size)
		self.assertEqual(
			sorted('{}.part{}'.format(Path(backup_config.base_filename).name, i) for i in range(len(result.segments))),
			self.list_output_files(backup_config),
		)

	# ==================== Tests ====================

	def test_0_single_large_file(self):
		content = self.create_file('big.bin', 10 * MiB)
		backup_config = self.make_backup_config(4 * MiB)

		result = CreateSegmentedBackupAction(backup_config).run()

		self.assertEqual(3, len(result.segments))
		self.assertEqual([4 * MiB, 4 * MiB, 2 * MiB], [seg.raw_size for seg in result.segments])
		self.assertEqual(1, result.entry_count)
		self.assertEqual(10 * MiB, result.raw_size)
		self.check_segments_on_disk(backup_config, result)

		segments = read_segments([seg.path for seg in result.segments])
		self.assertEqual([4, 4, 2], [len(members) for members in segments])
		for members in segments:
			for member, data in members:
				self.assertEqual('big.bin', member.name)
				self.assertEqual(MiB, member.size)
				self.assertEqual(MiB, len(data))
		self.assertEqual({'big.bin': content}, join_contents(segments))

	def test_1_shared_header(self):
		path = self.cwd_path / 'a.txt'
		path.write_bytes(b'x' * 10000)
		os.chmod(path, 0o640)
		os.utime(path, (1700000000, 1700000000))
		self.set_chunk_size(4096)

		result = CreateSegmentedBackupAction(self.make_backup_config(5000)).run()
		self.assertEqual(2, len(result.segments))

		segments = read_segments([seg.path for seg in result.segments])
		members = [member for seg in segments for member, _ in seg]
		self.assertEqual([4096, 4096, 1808], [m.size for m in members])
		for m in members:
			self.assertEqual('a.txt', m.name)
			self.assertEqual(0o640, m.mode)
			self.assertEqual(1700000000, m.mtime)
			self.assertEqual(os.getuid() if hasattr(os, 'getuid') else 0, m.uid)
		self.assertEqual(2, len(segments[0]))
		self.assertEqual(1, len(segments[1]))

	def test_2_tree(self):
		self.set_chunk_size(4096)
		expected: Dict[str, bytes] = {}
		for i in range(8):
			name = 'file_{}.bin'.format(i)
			expected[name] = self.create_file(name, self.rnd.randint(0, 30000))
		for name in ['sub/x.bin', 'sub/deep/y.bin', 'sub/deep/z.bin']:
			expected[name] = self.create_file(name, self.rnd.randint(1, 20000))
		(self.cwd_path / 'sub' / 'empty_dir').mkdir()
		segment_size = 10000

		result = CreateSegmentedBackupAction(self.make_backup_config(segment_size)).run()
		self.assertEqual(9, result.entry_count)
		self.check_segments_on_disk(self.make_backup_config(segment_size), result)

		for seg in result.segments:
			self.assertLess(seg.raw_size, segment_size + 4096)
		for seg in result.segments[:-1]:
			self.assertGreaterEqual(seg.raw_size, segment_size)

		segments = read_segments([seg.path for seg in result.segments])
		self.assertEqual(expected, join_contents(segments))

		# the subdirectory is stored as a whole in one segment
		sub_segments = {i for i, members in enumerate(segments) for member, _ in members if member.name.split('/')[0] == 'sub'}
		self.assertEqual(1, len(sub_segments))
		names = [member.name for members in segments for member, _ in members]
		self.assertIn('sub', names)
		self.assertIn('sub/empty_dir', names)

		# top level entries are added sorted by name, every file once per chunk
		top_files = [n for n in names if n.startswith('file_')]
		self.assertEqual(sorted(top_files), top_files)

	def test_3_large_subdirectory_not_split(self):
		self.set_chunk_size(4096)
		expected = {
			'sub/a.bin': self.create_file('sub/a.bin', 50000),
			'sub/b.bin': self.create_file('sub/b.bin', 50000),
		}

		result = CreateSegmentedBackupAction(self.make_backup_config(10000)).run()
		self.assertEqual(1, len(result.segments))
		self.assertEqual(0, result.segments[0].raw_size)
		self.assertEqual(expected, join_contents(read_segments([result.segments[0].path])))

	def test_4_empty_directory(self):
		backup_config = self.make_backup_config(4 * MiB)
		result = CreateSegmentedBackupAction(backup_config).run()

		self.assertEqual(1, len(result.segments))
		self.assertEqual(0, result.entry_count)
		self.check_segments_on_disk(backup_config, result)
		self.assertEqual([[]], read_segments([result.segments[0].path]))

	def test_5_empty_file(self):
		self.create_file('empty.txt', 0)
		result = CreateSegmentedBackupAction(self.make_backup_config(4 * MiB)).run()

		members = read_segments([result.segments[0].path])[0]
		self.assertEqual(1, len(members))
		self.assertEqual('empty.txt', members[0][0].name)
		self.assertEqual(0, members[0][0].size)

	def test_6_exact_threshold(self):
		content = self.create_file('exact.bin', 4 * MiB)
		result = CreateSegmentedBackupAction(self.make_backup_config(4 * MiB)).run()

		# the rollover happens right after the last chunk, leaving an empty trailing segment
		self.assertEqual(2, len(result.segments))
		segments = read_segments([seg.path for seg in result.segments])
		self.assertEqual([], segments[1])
		self.assertEqual({'exact.bin': content}, join_contents(segments))

	@unittest.skipUnless(hasattr(os, 'symlink'), 'symlink not supported')
	def test_7_symlink(self):
		self.create_file('target.txt', 100)
		try:
			os.symlink('target.txt', self.cwd_path / 'link')
		except OSError as e:
			self.skipTest('cannot create symlink: {}'.format(e))

		result = CreateSegmentedBackupAction(self.make_backup_config(4 * MiB)).run()
		members = {member.name: member for member, _ in read_segments([result.segments[0].path])[0]}
		self.assertTrue(members['link'].issym())
		self.assertEqual('target.txt', members['link'].linkname)
		self.assertTrue(members['target.txt'].isfile())

	def test_8_failure_keeps_closed_segments(self):
		self.create_file('big.bin', 10 * MiB)
		backup_config = self.make_backup_config(4 * MiB)
		make_chunk_info = PendingEntry.make_chunk_info
		calls = 0

		def failing_make_chunk_info(entry: PendingEntry, size: int):
			nonlocal calls
			calls += 1
			if calls == 6:
				raise OSError('disk on fire')
			return make_chunk_info(entry, size)

		with mock.patch.object(PendingEntry, 'make_chunk_info', autospec=True, side_effect=failing_make_chunk_info):
			with self.assertRaises(OSError):
				CreateSegmentedBackupAction(backup_config).run()

		self.assertTrue(backup_config.segment_path(0).is_file())
		self.assertFalse(backup_config.segment_path(1).exists())
		self.assertFalse(backup_config.segment_temp_path(1).exists())
		self.assertEqual([backup_config.segment_path(0).name], self.list_output_files(backup_config))

		segments = read_segments([backup_config.segment_path(0)])
		self.assertEqual(4 * MiB, sum(len(data) for _, data in segments[0]))

	def test_9_skip_own_output(self):
		# the working directory is where the segments are written to
		cwd = self.home_path.parent
		backup_config = self.make_backup_config(4 * MiB, cwd=cwd)
		self.assertEqual(cwd, backup_config.output_directory)

		stale = backup_config.segment_path(7)
		stale.write_bytes(b'stale')
		self.create_file('data.bin', 1000)
		# only looks like a segment
		look_alike = cwd / (backup_config.segment_name_prefix + 'ial_notes.txt')
		look_alike.write_bytes(b'notes')
		self.assertEqual([stale], backup_config.find_existing_segments())

		result = CreateSegmentedBackupAction(backup_config).run()
		segments = read_segments([result.segments[0].path])
		names = [member.name for member, _ in segments[0]]
		self.assertIn('u', names)
		self.assertIn('u/proj/data.bin', names)
		self.assertEqual(b'notes', join_contents(segments)[look_alike.name])
		for name in names:
			if name != look_alike.name:
				self.assertFalse(name.startswith(backup_config.segment_name_prefix), name)
		self.assertEqual(b'stale', stale.read_bytes())

	@unittest.skipUnless(hasattr(socket, 'AF_UNIX'), 'unix socket not supported')
	def test_10_socket_skipped(self):
		self.create_file('a.txt', 100)
		bind_unix_socket(self.cwd_path / 'sock')

		result = CreateSegmentedBackupAction(self.make_backup_config(4 * MiB)).run()
		self.assertEqual(1, result.entry_count)
		names = [member.name for member, _ in read_segments([result.segments[0].path])[0]]
		self.assertEqual(['a.txt'], names)


class SegmentedArchiveWriterTestCase(unittest.TestCase):
	def setUp(self):
		self.__temp_dir = tempfile.TemporaryDirectory()
		self.temp_path = Path(self.__temp_dir.name)
		(self.temp_path / 'u' / 'proj').mkdir(parents=True)
		self.backup_config = BackupConfig.resolve(RunContext(
			working_directory=self.temp_path / 'u' / 'proj',
			home_directory=str(self.temp_path / 'u'),
			segment_size_override='100',
			date=datetime.date(2024, 1, 15),
		))

	def tearDown(self):
		self.__temp_dir.cleanup()

	def create_writer(self) -> SegmentedArchiveWriter:
		return SegmentedArchiveWriter(self.backup_config, GzipCompressor(1), chunk_size=64, logger=logger.get())

	def test_state_machine(self):
		writer = self.create_writer()
		self.assertEqual(SegmentedArchiveWriter.State.no_segment, writer.state)

		file_path = self.backup_config.working_directory / 'f'
		file_path.write_bytes(b'1' * 250)
		record = EntryRecord.of(file_path, self.backup_config.working_directory)
		with self.assertRaises(RuntimeError):
			writer.add_entry(record)

		writer.open()
		self.assertEqual(SegmentedArchiveWriter.State.segment_open, writer.state)
		with self.assertRaises(RuntimeError):
			writer.open()

		writer.add_entry(record)
		segments = writer.close()
		self.assertEqual(SegmentedArchiveWriter.State.closed, writer.state)
		self.assertEqual([128, 122, 0], [seg.raw_size for seg in segments])

		with self.assertRaises(RuntimeError):
			writer.add_entry(record)
		with self.assertRaises(RuntimeError):
			writer.close()

	def test_abort(self):
		writer = self.create_writer()
		writer.open()
		self.assertTrue(self.backup_config.segment_temp_path(0).is_file())
		writer.abort()
		self.assertEqual(SegmentedArchiveWriter.State.closed, writer.state)
		self.assertFalse(self.backup_config.segment_temp_path(0).exists())
		self.assertFalse(self.backup_config.segment_path(0).exists())

	@unittest.skipUnless(hasattr(socket, 'AF_UNIX'), 'unix socket not supported')
	def test_socket(self):
		sock_path = self.backup_config.working_directory / 'sock'
		bind_unix_socket(sock_path)
		record = EntryRecord.of(sock_path, self.backup_config.working_directory)
		self.assertTrue(record.is_socket())

		with self.create_writer() as writer:
			writer.add_entry(record)
		self.assertEqual([[]], read_segments([seg.path for seg in writer.segments]))

	def test_bad_chunk_size(self):
		with self.assertRaises(ValueError):
			SegmentedArchiveWriter(self.backup_config, GzipCompressor(1), chunk_size=0, logger=logger.get())


if __name__ == '__main__':
	unittest.main()
