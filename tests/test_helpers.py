import unittest
from datetime import datetime

from scpi_daq_system.utils.helpers import (
    format_timestamp,
    format_timestamp_filename,
    parse_host_port,
    parse_id_list,
)


class TestHelpers(unittest.TestCase):
    def test_format_timestamp(self):
        dt = datetime(2023, 12, 15, 14, 30, 22)
        self.assertEqual(format_timestamp(dt), "2023-12-15 14:30:22")
        self.assertEqual(format_timestamp(dt, "%Y%m%d"), "20231215")

    def test_format_timestamp_filename(self):
        dt = datetime(2023, 12, 15, 14, 30, 22)
        self.assertEqual(format_timestamp_filename(dt), "20231215_143022")

    def test_parse_id_list(self):
        self.assertEqual(parse_id_list("1, 2,3"), [1, 2, 3])
        self.assertEqual(parse_id_list([4, "5"]), [4, 5])
        self.assertEqual(parse_id_list(""), [])
        with self.assertRaises(ValueError):
            parse_id_list("1,two")

    def test_parse_host_port(self):
        self.assertEqual(parse_host_port("192.168.1.150:45454"), ("192.168.1.150", 45454))
        self.assertEqual(parse_host_port(" lab-th2690 : 5025"), ("lab-th2690", 5025))
        for bad in ("192.168.1.150", ":45454", "host:abc", "host:0", "host:70000"):
            with self.subTest(value=bad):
                with self.assertRaises(ValueError):
                    parse_host_port(bad)


if __name__ == '__main__':
    unittest.main()
