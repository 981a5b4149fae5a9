import enum
import sys

from typing_extensions import NoReturn


class ErrorReturnCodes(enum.Enum):
	argparse_error = 2  # see argparse.ArgumentParser.error
	action_failed = 3
	configuration_error = 4

	def sys_exit(self) -> NoReturn:
		sys.exit(self.value)
