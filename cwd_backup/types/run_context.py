import dataclasses
import datetime
import os
from pathlib import Path
from typing import Optional, Mapping

from typing_extensions import Self

from cwd_backup import constants


@dataclasses.dataclass(frozen=True)
class RunContext:
	"""
	Process-wide inputs of a backup run, captured once at startup
	"""
	working_directory: Path
	home_directory: Optional[str]
	segment_size_override: Optional[str]
	date: datetime.date

	@classmethod
	def from_environment(cls, environ: Optional[Mapping[str, str]] = None, *, segment_size_override: Optional[str] = None) -> Self:
		"""
		:param environ: the environment to read from, default: ``os.environ``
		:param segment_size_override: takes priority over the segment size from the environment
		"""
		if environ is None:
			environ = os.environ
		if segment_size_override is None:
			segment_size_override = environ.get(constants.SEGMENT_SIZE_ENV_VAR)
		return cls(
			working_directory=Path(os.getcwd()),
			home_directory=environ.get(constants.HOME_ENV_VAR),
			segment_size_override=segment_size_override,
			date=datetime.date.today(),
		)
