# This file is part of lsst-fitsdecode.
#
# Developed for the LSST Data Management System.
# This product includes software developed by the LSST Project
# (https://www.lsst.org).
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import datetime
import unittest

from lsst.fitsdecode import (
    Absent,
    AsciiColumnFormat,
    Bitpix,
    BoolValue,
    ComplexValue,
    DateValue,
    IntegerValue,
    Keyword,
    RealValue,
    TextValue,
    ValueKind,
    parse_value,
    quote,
    to_python,
    unquote,
)


class ValueParserTestCase(unittest.TestCase):
    """Tests for parse_value and the value variants it produces."""

    def test_logical(self) -> None:
        """Test that T and F parse as logical values."""
        self.assertEqual(parse_value("T", "SIMPLE"), BoolValue(True))
        self.assertEqual(parse_value("   F   ", "EXTEND"), BoolValue(False))
        self.assertEqual(parse_value("T", "SIMPLE").to_string(), "T")

    def test_integer(self) -> None:
        """Test integer values, including signs and values that do not fit
        in 64 bits.
        """
        self.assertEqual(parse_value("42", "NAXIS1"), IntegerValue(42))
        self.assertEqual(parse_value("  -7", "OFFSET"), IntegerValue(-7))
        self.assertEqual(parse_value("+3", "OFFSET"), IntegerValue(3))
        big = parse_value("123456789012345678901234567890", "BIG")
        self.assertEqual(big, IntegerValue(123456789012345678901234567890))
        self.assertEqual(big.kind, ValueKind.INTEGER)
        for text in ("0", "-17", "+3", "  99  "):
            with self.subTest(text=text):
                value = parse_value(text, "VALUE")
                self.assertEqual(parse_value(value.to_string(), "VALUE"), value)

    def test_real(self) -> None:
        """Test real values in fixed and exponential notation."""
        self.assertEqual(parse_value("2.5", "EXPTIME"), RealValue(2.5))
        self.assertEqual(parse_value("-3.5E2", "EXPTIME"), RealValue(-350.0))
        self.assertEqual(parse_value(".25", "EXPTIME"), RealValue(0.25))
        self.assertEqual(parse_value("1.5D3", "EXPTIME"), RealValue(1500.0))
        self.assertEqual(RealValue(1e20).to_string(), "1E+20")
        self.assertEqual(RealValue(2.5).to_string(), "2.5")

    def test_complex(self) -> None:
        """Test complex values written as a pair of reals."""
        expected = ComplexValue(1.0, -2.0)
        self.assertEqual(parse_value("(1.0, -2.0)", "CVAL"), expected)
        self.assertEqual(parse_value("1.0 -2.0", "CVAL"), expected)
        self.assertEqual(expected.value, complex(1.0, -2.0))
        self.assertEqual(expected.to_string(), "(1.0, -2.0)")
        self.assertIsNone(parse_value("1.0 abc", "CVAL"))

    def test_text(self) -> None:
        """Test quoted strings."""
        value = parse_value("'ABCXYZ'", "OBJECT")
        self.assertEqual(value, TextValue("ABCXYZ"))
        self.assertEqual(value.to_string(), "'ABCXYZ'")
        self.assertEqual(value.kind, ValueKind.TEXT)
        # Blanks inside the quotes are significant; outside they are not.
        self.assertEqual(parse_value("  'IMAGE   '  ", "XTENSION"), TextValue("IMAGE   "))
        self.assertEqual(parse_value("''", "OBJECT"), TextValue(""))

    def test_escaped_quotes(self) -> None:
        """Test that doubled quotes inside a string are unescaped, and
        escaped again by to_string.
        """
        value = parse_value("'O''HARA'", "OBSERVER")
        self.assertEqual(value, TextValue("O'HARA"))
        self.assertEqual(value.to_string(), "'O''HARA'")
        self.assertEqual(unquote("'it''s'"), "it's")
        self.assertEqual(quote("it's"), "'it''s'")
        self.assertEqual(unquote("'unterminated"), "unterminated")
        self.assertEqual(unquote("bare"), "bare")

    def test_unrecognized(self) -> None:
        """Test that values that cannot be interpreted produce None."""
        self.assertIsNone(parse_value("", "EMPTY"))
        self.assertIsNone(parse_value("   ", "EMPTY"))
        self.assertIsNone(parse_value("garbage", "JUNK"))
        self.assertIsNone(parse_value("1 2 3", "JUNK"))

    def test_bitpix(self) -> None:
        """Test that BITPIX cards produce enumeration members, and only for
        valid values.
        """
        self.assertIs(parse_value("-32", "BITPIX"), Bitpix.FLOAT32)
        self.assertIs(parse_value("8", "BITPIX"), Bitpix.UINT8)
        self.assertIsNone(parse_value("12", "BITPIX"))
        self.assertIsNone(parse_value("'8'", "BITPIX"))
        self.assertEqual(Bitpix.FLOAT32.kind, ValueKind.BITPIX)
        self.assertEqual(Bitpix.INT64.itemsize, 8)
        self.assertEqual(Bitpix.INT16.to_numpy().str, ">i2")
        self.assertIs(Bitpix.from_numpy("<f8"), Bitpix.FLOAT64)
        self.assertIsNone(Bitpix.from_int(7))
        with self.assertRaises(TypeError):
            Bitpix.from_numpy("c16")

    def test_date(self) -> None:
        """Test DATE cards with and without a time zone."""
        utc = datetime.UTC
        self.assertEqual(
            parse_value("'2020-01-02T03:04:05'", "DATE"),
            DateValue(datetime.datetime(2020, 1, 2, 3, 4, 5, tzinfo=utc)),
        )
        self.assertEqual(
            parse_value("'2020-01-02'", "DATE"),
            DateValue(datetime.datetime(2020, 1, 2, tzinfo=utc)),
        )
        zoned = parse_value("'2020-01-02T03:04:05+0100'", "DATE")
        self.assertIsInstance(zoned, DateValue)
        self.assertEqual(zoned.value, datetime.datetime(2020, 1, 2, 2, 4, 5, tzinfo=utc))
        self.assertEqual(parse_value("'yesterday'", "DATE"), TextValue("yesterday"))
        # Only the DATE keyword itself is special.
        self.assertEqual(parse_value("'2020-01-02'", "DATE-OBS"), TextValue("2020-01-02"))

    def test_keyword_hint_is_case_insensitive(self) -> None:
        """Test that keyword-specific parsing does not depend on case or
        padding.
        """
        self.assertIs(parse_value("16", "bitpix  "), Bitpix.INT16)
        self.assertEqual(parse_value("'F8.3'", "tform2"), AsciiColumnFormat("F", 8, 3))


class AbsentTestCase(unittest.TestCase):
    """Tests for the Absent placeholder."""

    def test_identity(self) -> None:
        """Test that absent values are equal only to themselves."""
        a = Absent()
        b = Absent()
        self.assertEqual(a, a)
        self.assertNotEqual(a, b)
        self.assertEqual(len({a, b}), 2)
        self.assertFalse(a)
        self.assertEqual(a.to_string(), "")
        self.assertEqual(a.kind, ValueKind.ABSENT)


class ToPythonTestCase(unittest.TestCase):
    """Tests for to_python."""

    def test_conversions(self) -> None:
        """Test conversion of each kind of value to a plain Python object."""
        self.assertEqual(to_python(TextValue("SCI     ")), "SCI")
        self.assertIs(to_python(BoolValue(True)), True)
        self.assertEqual(to_python(IntegerValue(3)), 3)
        self.assertEqual(to_python(RealValue(0.5)), 0.5)
        self.assertEqual(to_python(ComplexValue(1.0, 2.0)), complex(1.0, 2.0))
        self.assertEqual(
            to_python(DateValue(datetime.datetime(2020, 1, 2, 3, 4, 5, tzinfo=datetime.UTC))),
            "2020-01-02T03:04:05",
        )
        self.assertEqual(to_python(Bitpix.INT32), 32)
        self.assertEqual(to_python(AsciiColumnFormat("E", 15, 7)), "E15.7")
        self.assertIsNone(to_python(Absent()))


class KeywordTestCase(unittest.TestCase):
    """Tests for the Keyword class."""

    def test_canonical_form(self) -> None:
        """Test that keywords are stripped and upper-cased."""
        self.assertEqual(Keyword(" naxis1 "), "NAXIS1")
        self.assertEqual(Keyword.indexed("TFORM", 12), "TFORM12")
        self.assertEqual(Keyword.XTENSION, "XTENSION")
        self.assertEqual(Keyword(""), "")

    def test_too_long(self) -> None:
        """Test that keywords longer than 8 characters are rejected."""
        with self.assertRaises(ValueError):
            Keyword("LONGKEYWORD")


if __name__ == "__main__":
    unittest.main()
