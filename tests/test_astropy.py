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

import glob
import os
import tempfile
import unittest

import astropy.io.fits
import astropy.units as u
import numpy as np

from lsst.fitsdecode import (
    AsciiTableBlock,
    BinaryColumnFormat,
    BinaryTableBlock,
    DecodeOptions,
    ImageBlock,
    decode_buffer,
    read_file,
)
from lsst.fitsdecode.tests import write_astropy

DATA_DIR = os.environ.get("TESTDATA_FITSDECODE_DIR", None)


class AstropyImageTestCase(unittest.TestCase):
    """Tests that decode images written by astropy.io.fits."""

    def test_images(self) -> None:
        """Test integer and floating-point image extensions."""
        rng = np.random.default_rng(5)
        science = rng.normal(size=(5, 7)).astype(np.float32)
        mask = np.arange(35, dtype=np.int32).reshape(5, 7)
        sci_hdu = astropy.io.fits.ImageHDU(science, name="SCI")
        sci_hdu.header["BUNIT"] = "Jy"
        buffer = write_astropy(sci_hdu, astropy.io.fits.ImageHDU(mask, name="MASK"))
        document = decode_buffer(buffer)
        self.assertEqual(document.diagnostics, ())
        self.assertEqual(len(document), 3)
        sci = document["SCI"]
        self.assertIsInstance(sci, ImageBlock)
        self.assertEqual(sci.shape, (5, 7))
        np.testing.assert_array_equal(sci.data, science)
        self.assertEqual(sci.unit, u.Jy)
        np.testing.assert_array_equal(document["MASK"].data, mask)
        self.assertIsNone(document["MASK"].unit)
        header = sci.header.to_astropy()
        self.assertEqual(header["EXTNAME"], "SCI")
        self.assertEqual(header["NAXIS2"], 5)

    def test_primary_image(self) -> None:
        """Test an image in the primary block, with extra header cards."""
        values = np.linspace(0.0, 1.0, 12).reshape(3, 4)
        primary = astropy.io.fits.PrimaryHDU(values)
        primary.header["OBJECT"] = ("M31", "target name")
        primary.header["DATE"] = "2024-06-01T12:30:00"
        primary.header["COMMENT"] = "written by a test"
        document = decode_buffer(write_astropy(primary))
        self.assertEqual(document.diagnostics, ())
        np.testing.assert_array_equal(document.primary.data, values)
        self.assertEqual(document.primary.header.get_str("OBJECT"), "M31")
        self.assertEqual(document.primary.header.card("OBJECT").comment, "target name")
        self.assertEqual(document.primary.header.to_astropy()["DATE"], "2024-06-01T12:30:00")

    def test_read_file(self) -> None:
        """Test reading a file from disk."""
        buffer = write_astropy(astropy.io.fits.ImageHDU(np.ones((2, 2), dtype=np.int16), name="ONES"))
        with tempfile.TemporaryDirectory() as tmpdir:
            filename = os.path.join(tmpdir, "ones.fits")
            with open(filename, "wb") as stream:
                stream.write(buffer)
            document = read_file(filename)
        np.testing.assert_array_equal(document["ONES"].data, np.ones((2, 2)))


class AstropyTableTestCase(unittest.TestCase):
    """Tests that decode tables written by astropy.io.fits."""

    def test_binary_table(self) -> None:
        """Test a binary table with several column types."""
        hdu = astropy.io.fits.BinTableHDU.from_columns(
            [
                astropy.io.fits.Column(name="ID", format="J", array=np.array([1, 2, 3])),
                astropy.io.fits.Column(
                    name="FLUX", format="E", unit="Jy", array=np.array([0.5, 1.5, -2.0])
                ),
                astropy.io.fits.Column(name="FLAG", format="L", array=np.array([True, False, True])),
                astropy.io.fits.Column(name="NAME", format="8A", array=np.array(["a", "bc", "def"])),
                astropy.io.fits.Column(name="POS", format="2D", array=np.arange(6.0).reshape(3, 2)),
            ],
            name="CAT",
        )
        document = decode_buffer(write_astropy(hdu))
        self.assertEqual(document.diagnostics, ())
        block = document["CAT"]
        self.assertIsInstance(block, BinaryTableBlock)
        self.assertEqual(block.n_rows, 3)
        self.assertEqual([c.name for c in block.columns], ["ID", "FLUX", "FLAG", "NAME", "POS"])
        self.assertEqual(block.columns[1].unit, "Jy")
        self.assertEqual(block.columns[0].format, BinaryColumnFormat(1, "J"))
        table = block.to_table()
        self.assertEqual(table.meta["EXTNAME"], "CAT")
        np.testing.assert_array_equal(table["ID"], [1, 2, 3])
        np.testing.assert_array_almost_equal(table["FLUX"], [0.5, 1.5, -2.0])
        self.assertEqual(table["FLUX"].unit, u.Jy)
        self.assertEqual(list(table["FLAG"]), [True, False, True])
        self.assertEqual(list(table["NAME"]), ["a", "bc", "def"])
        np.testing.assert_array_equal(table["POS"], np.arange(6.0).reshape(3, 2))

    def test_variable_length_arrays(self) -> None:
        """Test a binary table with a variable-length array column."""
        cells = np.array([np.array([1, 2, 3]), np.array([4])], dtype=np.object_)
        hdu = astropy.io.fits.BinTableHDU.from_columns(
            [astropy.io.fits.Column(name="V", format="PJ()", array=cells)], name="VLA"
        )
        document = decode_buffer(write_astropy(hdu))
        self.assertEqual(document.diagnostics, ())
        block = document["VLA"]
        self.assertTrue(block.columns[0].format.is_variable_length)
        self.assertEqual(len(block.heap), 16)
        np.testing.assert_array_equal(block.variable_length_cell("V", 0), [1, 2, 3])
        np.testing.assert_array_equal(block.variable_length_cell("V", 1), [4])
        with self.assertRaises(KeyError):
            block.variable_length_cell("W", 0)

    def test_ascii_table(self) -> None:
        """Test an ASCII table."""
        hdu = astropy.io.fits.TableHDU.from_columns(
            [
                astropy.io.fits.Column(name="A", format="I10", array=np.array([1, -2]), ascii=True),
                astropy.io.fits.Column(
                    name="B", format="E15.7", unit="m", array=np.array([1.5, -2.25]), ascii=True
                ),
                astropy.io.fits.Column(name="C", format="A8", array=np.array(["x", "yz"]), ascii=True),
            ],
            name="ASC",
        )
        document = decode_buffer(write_astropy(hdu))
        self.assertEqual(document.diagnostics, ())
        block = document["ASC"]
        self.assertIsInstance(block, AsciiTableBlock)
        table = block.to_table()
        np.testing.assert_array_equal(table["A"], [1, -2])
        np.testing.assert_array_almost_equal(table["B"], [1.5, -2.25])
        self.assertEqual(table["B"].unit, u.m)
        self.assertEqual([value.strip() for value in table["C"]], ["x", "yz"])

    def test_headers_only_table(self) -> None:
        """Test that to_table fails when the data unit was not decoded."""
        hdu = astropy.io.fits.BinTableHDU.from_columns(
            [astropy.io.fits.Column(name="ID", format="K", array=np.array([1, 2]))]
        )
        buffer = write_astropy(hdu)
        with tempfile.TemporaryDirectory() as tmpdir:
            filename = os.path.join(tmpdir, "table.fits")
            with open(filename, "wb") as stream:
                stream.write(buffer)
            document = read_file(filename, options=DecodeOptions.HEADERS_ONLY)
        with self.assertRaises(RuntimeError):
            document[1].to_table()


class RealDataTestCase(unittest.TestCase):
    """Tests that decode files from a test data directory."""

    @unittest.skipUnless(DATA_DIR is not None, "TESTDATA_FITSDECODE_DIR is not in the environment.")
    def test_block_counts(self) -> None:
        """Test that every file decodes into as many blocks as astropy
        finds, with no diagnostics.
        """
        assert DATA_DIR is not None, "Guaranteed by decorator."
        filenames = sorted(glob.glob(os.path.join(DATA_DIR, "**", "*.fits"), recursive=True))
        if not filenames:
            raise unittest.SkipTest(f"No FITS files found in {DATA_DIR}.")
        for filename in filenames:
            with self.subTest(filename=filename):
                document = read_file(filename, options=DecodeOptions.HEADERS_ONLY)
                self.assertIsNotNone(document)
                self.assertEqual(document.diagnostics, ())
                with astropy.io.fits.open(filename) as hdu_list:
                    self.assertEqual(len(document), len(hdu_list))
                    for block, hdu in zip(document, hdu_list, strict=True):
                        self.assertEqual(block.header.data_size, hdu.size)


if __name__ == "__main__":
    unittest.main()
