import dataclasses
from pathlib import Path


@dataclasses.dataclass(frozen=True)
class SegmentInfo:
	index: int
	path: Path
	raw_size: int  # file content bytes streamed through the chunk loop
	stored_size: int  # compressed size on disk
