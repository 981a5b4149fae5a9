from pathlib import Path


class CwdBackupError(Exception):
	pass


class ConfigurationError(CwdBackupError):
	pass


class HomeDirectoryNotFound(ConfigurationError):
	def __init__(self, env_var: str):
		super().__init__('cannot determine the home directory, environment variable {} is not set'.format(env_var))
		self.env_var = env_var


class BackupAborted(CwdBackupError):
	pass


class BadEntryPath(CwdBackupError):
	def __init__(self, path: Path, root: Path):
		super().__init__('entry {!r} is not inside the working directory {!r}'.format(str(path), str(root)))
		self.path = path
		self.root = root
