import dataclasses
from typing import List

from cwd_backup.types.segment_info import SegmentInfo


@dataclasses.dataclass(frozen=True)
class BackupResult:
	segments: List[SegmentInfo]
	entry_count: int

	@property
	def raw_size(self) -> int:
		return sum(seg.raw_size for seg in self.segments)

	@property
	def stored_size(self) -> int:
		return sum(seg.stored_size for seg in self.segments)
