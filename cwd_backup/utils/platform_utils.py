import functools
from typing import Optional

try:
	import pwd
except ImportError:  # windows
	pwd = None
try:
	import grp
except ImportError:  # windows
	grp = None


@functools.lru_cache(maxsize=64)
def uid_to_name(uid: int) -> Optional[str]:
	if pwd is None:
		return None
	try:
		return pwd.getpwuid(uid).pw_name
	except KeyError:
		return None


@functools.lru_cache(maxsize=64)
def gid_to_name(gid: int) -> Optional[str]:
	if grp is None:
		return None
	try:
		return grp.getgrgid(gid).gr_name
	except KeyError:
		return None
