import dataclasses
import enum
import os
import stat
import tarfile
from pathlib import Path

from typing_extensions import Self

from cwd_backup.exceptions import BadEntryPath
from cwd_backup.utils import platform_utils


class EntryKind(enum.Enum):
	file = enum.auto()
	directory = enum.auto()
	other = enum.auto()  # symlink, fifo, device, socket


@dataclasses.dataclass(frozen=True)
class EntryRecord:
	path: Path
	name: str  # relative to the working directory, in posix form
	kind: EntryKind
	size: int
	mode: int
	uid: int
	gid: int
	mtime: float

	@classmethod
	def of(cls, path: Path, root: Path) -> Self:
		"""
		Symlinks are not followed
		"""
		try:
			name = path.relative_to(root).as_posix()
		except ValueError:
			raise BadEntryPath(path, root) from None

		st: os.stat_result = path.lstat()
		if stat.S_ISREG(st.st_mode):
			kind = EntryKind.file
		elif stat.S_ISDIR(st.st_mode):
			kind = EntryKind.directory
		else:
			kind = EntryKind.other
		return cls(
			path=path,
			name=name,
			kind=kind,
			size=st.st_size if kind == EntryKind.file else 0,
			mode=st.st_mode,
			uid=st.st_uid,
			gid=st.st_gid,
			mtime=st.st_mtime,
		)

	def is_file(self) -> bool:
		return self.kind == EntryKind.file

	def is_dir(self) -> bool:
		return self.kind == EntryKind.directory

	def is_socket(self) -> bool:
		return stat.S_ISSOCK(self.mode)

	def to_tar_info(self) -> tarfile.TarInfo:
		if not self.is_file():
			raise ValueError('only regular files have a prebuilt tar header, {!r} is a {}'.format(self.name, self.kind.name))

		info = tarfile.TarInfo(name=self.name)
		info.type = tarfile.REGTYPE
		info.mode = stat.S_IMODE(self.mode)
		info.size = self.size
		info.mtime = int(self.mtime)
		info.uid = self.uid
		info.gid = self.gid
		if (uid_name := platform_utils.uid_to_name(self.uid)) is not None:
			info.uname = uid_name
		if (gid_name := platform_utils.gid_to_name(self.gid)) is not None:
			info.gname = gid_name
		return info
