import functools
import logging
from typing import Optional, Any

from mcdreforged.api.utils import Serializable

from cwd_backup.types.units import ByteCount


class Config(Serializable):
	debug: bool = False
	default_segment_size: ByteCount = ByteCount('4GiB')
	read_chunk_size: ByteCount = ByteCount('1MiB')
	compress_level: int = 6
	separator_replacement: str = '#'

	def validate_attribute(self, attr_name: str, attr_value: Any, **kwargs):
		if attr_name == 'compress_level':
			if not 1 <= attr_value <= 9:
				raise ValueError('compress_level should be in range [1, 9], got {}'.format(attr_value))
		elif attr_name in ('default_segment_size', 'read_chunk_size'):
			if ByteCount(attr_value).value <= 0:
				raise ValueError('{} should be positive, got {}'.format(attr_name, attr_value))

	# ==================== Instance getters ====================

	@classmethod
	@functools.lru_cache
	def __get_default(cls) -> 'Config':
		return Config.get_default()

	@classmethod
	def get(cls) -> 'Config':
		if _config is None:
			return cls.__get_default()
		return _config


_config: Optional[Config] = None


def set_config_instance(cfg: Config):
	global _config
	_config = cfg

	from cwd_backup import logger
	logger.get().setLevel(logging.DEBUG if cfg.debug else logging.INFO)
	if cfg.debug:
		logger.get().debug('debug on')


def reset_config_instance():
	global _config
	_config = None
