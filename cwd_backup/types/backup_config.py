import dataclasses
import datetime
import os
import re
from pathlib import Path
from typing import Optional, List

from typing_extensions import Self

from cwd_backup import constants
from cwd_backup.exceptions import HomeDirectoryNotFound
from cwd_backup.types.run_context import RunContext


def flatten_path(path: str, replacement: str) -> str:
	separators = {'/', os.sep}
	if os.altsep is not None:
		separators.add(os.altsep)
	for sep in separators:
		path = path.replace(sep, replacement)
	return path


def parse_segment_size(value: Optional[str], default: int) -> int:
	"""
	A missing, non-numeric or non-positive value silently falls back to the default
	"""
	if value is None or not re.fullmatch(r'\+?[0-9]+', value):
		return default
	size = int(value)
	return size if size > 0 else default


@dataclasses.dataclass(frozen=True)
class BackupConfig:
	working_directory: Path
	home_directory: str
	base_filename: str
	segment_size: int
	date: datetime.date

	@classmethod
	def resolve(cls, ctx: RunContext) -> Self:
		from cwd_backup.config.config import Config
		config = Config.get()

		if not ctx.home_directory:
			raise HomeDirectoryNotFound(constants.HOME_ENV_VAR)

		relative = str(ctx.working_directory).replace(ctx.home_directory, '', 1)
		base_filename = '{}{}-{}'.format(
			ctx.home_directory,
			flatten_path(relative, config.separator_replacement),
			ctx.date.isoformat(),
		)
		return cls(
			working_directory=ctx.working_directory,
			home_directory=ctx.home_directory,
			base_filename=base_filename,
			segment_size=parse_segment_size(ctx.segment_size_override, int(config.default_segment_size.value)),
			date=ctx.date,
		)

	@property
	def output_directory(self) -> Path:
		return Path(self.base_filename).parent

	@property
	def segment_name_prefix(self) -> str:
		return Path(self.base_filename).name + constants.SEGMENT_SUFFIX_PREFIX

	def segment_path(self, index: int) -> Path:
		return Path('{}{}{}'.format(self.base_filename, constants.SEGMENT_SUFFIX_PREFIX, index))

	def segment_temp_path(self, index: int) -> Path:
		path = self.segment_path(index)
		return path.with_name(path.name + constants.SEGMENT_TEMP_SUFFIX)

	def is_segment_name(self, name: str) -> bool:
		"""
		``{base}.partN`` or ``{base}.partN.tmp`` only
		"""
		pattern = re.escape(self.segment_name_prefix) + r'[0-9]+(' + re.escape(constants.SEGMENT_TEMP_SUFFIX) + r')?'
		return re.fullmatch(pattern, name) is not None

	def is_output_path(self, path: Path) -> bool:
		return (
			os.path.abspath(path.parent) == os.path.abspath(self.output_directory) and
			self.is_segment_name(path.name)
		)

	def find_existing_segments(self) -> List[Path]:
		if not self.output_directory.is_dir():
			return []
		return sorted(
			p for p in self.output_directory.iterdir()
			if self.is_segment_name(p.name)
		)
