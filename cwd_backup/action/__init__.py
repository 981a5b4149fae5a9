"""
Actions that operate on the filesystem to produce backups
"""
import logging
from abc import ABC, abstractmethod
from typing import TypeVar, Generic

_T = TypeVar('_T')


class Action(Generic[_T], ABC):
	def __init__(self):
		from cwd_backup import logger
		from cwd_backup.config.config import Config
		self.logger: logging.Logger = logger.get()
		self.config: Config = Config.get()

	@abstractmethod
	def run(self) -> _T:
		...
