import functools
import json
import re
import unittest
from abc import ABC, abstractmethod
from typing import Union, Tuple, Generic, Dict, TypeVar, NamedTuple

from cwd_backup.utils import misc_utils

_T = TypeVar('_T')


def _parse_number(s: str) -> Union[int, float]:
	try:
		value = int(s)
	except ValueError:
		try:
			value = float(s)
		except ValueError:
			raise ValueError('{!r} is not a number'.format(s)) from None
		if value.is_integer():
			value = round(value)
	return value


def _split_unit(s: str) -> Tuple[Union[int, float], str]:
	match = re.fullmatch(r'([-+.\d]+)(\w*)', s.strip())
	if not match:
		raise ValueError('bad value {!r}'.format(s))
	return _parse_number(match.group(1)), match.group(2)


class ValueUnitPair(NamedTuple):
	value: Union[int, float]
	unit: str

	def to_str(self, ndigits: int = 2) -> str:
		if ndigits >= 0:
			return f'{self.value:.{ndigits}f}{self.unit}'
		else:
			return f'{self.value}{self.unit}'


class _UnitValueBase(Generic[_T], str, ABC):
	_value: _T

	@classmethod
	@abstractmethod
	def _get_unit_map(cls) -> Dict[str, _T]:
		...

	@classmethod
	def _get_formatting_unit_map(cls) -> Dict[str, _T]:
		return cls._get_unit_map()

	@classmethod
	@functools.lru_cache
	def __get_unit_map_lowered(cls) -> Dict[str, _T]:
		return {k.lower(): v for k, v in cls._get_unit_map().items()}

	@classmethod
	def parse_unit(cls, unit: str) -> _T:
		# exact match first, "k" and "ki" only differ by case after lowering
		if (ret := cls._get_unit_map().get(unit)) is not None:
			return ret
		ret = cls.__get_unit_map_lowered().get(unit.lower())
		if ret is None:
			raise ValueError('unknown unit {!r}'.format(unit))
		return ret

	@property
	def value(self) -> _T:
		return self._value

	@classmethod
	def _auto_format(cls, val: _T) -> ValueUnitPair:
		if val < 0:
			uvp = cls._auto_format(-val)
			return ValueUnitPair(-uvp.value, uvp.unit)
		ret = None
		for unit, k in cls._get_formatting_unit_map().items():
			x = val / k
			if x >= 1 or ret is None:
				if isinstance(x, float) and x.is_integer():
					x = int(x)
				ret = ValueUnitPair(x, unit)
			else:
				break
		if ret is None:
			raise AssertionError()
		return ret

	@classmethod
	def _precise_format(cls, val: _T) -> ValueUnitPair:
		if val < 0:
			uvp = cls._precise_format(-val)
			return ValueUnitPair(-uvp.value, uvp.unit)

		units = list(reversed(cls._get_formatting_unit_map().items()))
		if val == 0:
			return ValueUnitPair(val, units[-1][0])
		for i, (unit, k) in enumerate(units):  # high -> low
			if val % k == 0 or i == len(units) - 1:
				x = val / k
				if isinstance(x, float) and x.is_integer():
					x = int(x)
				return ValueUnitPair(x, unit)
		raise AssertionError()

	def auto_format(self) -> ValueUnitPair:
		return self._auto_format(self._value)

	def precise_format(self) -> ValueUnitPair:
		return self._precise_format(self._value)

	def auto_str(self, **kwargs) -> str:
		return self.auto_format().to_str(**kwargs)

	def precise_str(self, **kwargs) -> str:
		return self.precise_format().to_str(**kwargs)

	def __str__(self) -> str:
		return self.precise_str(ndigits=-1)

	def __repr__(self) -> str:
		return misc_utils.represent(self, attrs={'value': self._value})


class Quantity(_UnitValueBase[Union[float, int]]):
	_bsi = {'': 1, 'Ki': 2 ** 10, 'Mi': 2 ** 20, 'Gi': 2 ** 30, 'Ti': 2 ** 40, 'Pi': 2 ** 50}
	_dsi = {'K': 10 ** 3, 'M': 10 ** 6, 'G': 10 ** 9, 'T': 10 ** 12, 'P': 10 ** 15}

	@classmethod
	@functools.lru_cache
	def _get_unit_map(cls) -> Dict[str, int]:
		return {**cls._bsi, **cls._dsi}

	@classmethod
	def _get_formatting_unit_map(cls) -> Dict[str, int]:
		return cls._bsi

	def __new__(cls, s: Union[int, float, str]):
		if isinstance(s, str):
			value, unit = _split_unit(s)
			value = value * cls.parse_unit(unit)
			if isinstance(value, float) and value.is_integer():
				value = int(value)
		elif isinstance(s, (int, float)):
			value = s
		else:
			raise TypeError(type(s))

		obj = super().__new__(cls, cls._precise_format(value).to_str(ndigits=-1))
		obj._value = value
		return obj


class ByteCount(Quantity):
	def __new__(cls, s: Union[int, float, str]):
		if isinstance(s, str) and len(s) > 0 and s[-1].lower() == 'b':
			s = s[:-1]
		return super().__new__(cls, s)

	@classmethod
	def _auto_format(cls, val) -> ValueUnitPair:
		uv = super()._auto_format(val)
		return ValueUnitPair(uv.value, uv.unit + 'B')

	@classmethod
	def _precise_format(cls, val) -> ValueUnitPair:
		uv = super()._precise_format(val)
		return ValueUnitPair(uv.value, uv.unit + 'B')

	@property
	def value(self) -> Union[int, float]:
		"""
		Byte count
		"""
		return super().value


class UnitTests(unittest.TestCase):
	def test_1_types(self):
		for cls in [Quantity, ByteCount]:
			for val in [0, '18', 127, 1024, 1440]:
				inst = cls(val)
				self.assertEqual(cls, type(inst))
				self.assertIsInstance(inst, str)
				self.assertEqual(int(val), inst.value)

	def test_2_quantity_format(self):
		self.assertEqual(1234, Quantity('1234').value)
		self.assertEqual(ValueUnitPair(1234 / 1024, 'Ki'), Quantity('1234').auto_format())
		self.assertEqual(ValueUnitPair(1234, ''), Quantity('1234').precise_format())

		self.assertEqual('4Ki', str(Quantity('4096')))
		self.assertEqual(ValueUnitPair(4, 'Ki'), Quantity('4096').auto_format())
		self.assertEqual(2000, Quantity('2K').value)
		self.assertEqual(2048, Quantity('2Ki').value)

	def test_3_byte_count_format(self):
		self.assertEqual(4 * 1024 ** 3, ByteCount('4GiB').value)
		self.assertEqual(1024 ** 2, ByteCount('1MiB').value)
		self.assertEqual(1536, ByteCount('1.5KiB').value)
		self.assertEqual(100 * 10 ** 6, ByteCount('100MB').value)
		self.assertEqual('4KiB', str(ByteCount('4096')))
		self.assertEqual('4GiB', str(ByteCount(4 * 1024 ** 3)))
		self.assertEqual('2.50MiB', ByteCount(int(2.5 * 1024 ** 2)).auto_str())

	def test_4_bad_values(self):
		for val in ['', 'abc', '12XB', '--']:
			with self.assertRaises(ValueError, msg=val):
				ByteCount(val)

	def test_5_convert(self):
		from mcdreforged.api.utils import serializer
		for cls in [Quantity, ByteCount]:
			for val in [0, 127, 1024, 1440, '2Gi', '3M', '4ki']:
				a = cls(val)
				self.assertEqual(str(a), serializer.serialize(a))

				b = serializer.deserialize(serializer.serialize(a), cls)
				self.assertEqual(a.value, b.value)

				c = json.loads(json.dumps(a))
				self.assertEqual(str(a), c)


if __name__ == '__main__':
	unittest.main()
