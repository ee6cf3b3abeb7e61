"""Tests for logcat line parsing."""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from modules.logstream.models import LogLevel
from modules.logstream.parser import LogLineParser


class LogLineParserTests(unittest.TestCase):
    def setUp(self):
        self.parser = LogLineParser()

    def test_threadtime_line(self):
        line = '06-15 10:23:01.123 1234 1234 I MyTag: Hello world'
        entry = self.parser.parse(line)

        self.assertEqual(entry.timestamp, '06-15 10:23:01.123')
        self.assertEqual(entry.pid, '1234')
        self.assertEqual(entry.level, LogLevel.INFO)
        self.assertEqual(entry.tag, 'MyTag')
        self.assertEqual(entry.message, 'Hello world')
        self.assertEqual(entry.raw, line)

    def test_threadtime_tag_stops_at_first_colon(self):
        entry = self.parser.parse('06-15 10:23:01.123  77  78 W  ActivityManager : Slow op: 300ms')

        self.assertEqual(entry.level, LogLevel.WARN)
        self.assertEqual(entry.tag, 'ActivityManager')
        self.assertEqual(entry.message, 'Slow op: 300ms')

    def test_brief_line(self):
        entry = self.parser.parse('E/Crashy(  987): fatal error')

        self.assertEqual(entry.level, LogLevel.ERROR)
        self.assertEqual(entry.tag, 'Crashy')
        self.assertEqual(entry.pid, '987')
        self.assertEqual(entry.message, 'fatal error')
        self.assertEqual(entry.timestamp, '')

    def test_time_prefixed_brief_line(self):
        entry = self.parser.parse('06-15 10:23:01.123 D/Wifi( 321): scan done')

        self.assertEqual(entry.timestamp, '06-15 10:23:01.123')
        self.assertEqual(entry.level, LogLevel.DEBUG)
        self.assertEqual(entry.tag, 'Wifi')
        self.assertEqual(entry.pid, '321')
        self.assertEqual(entry.message, 'scan done')

    def test_unrecognised_line_kept_as_info(self):
        line = '--------- beginning of main'
        entry = self.parser.parse(line)

        self.assertEqual(entry.level, LogLevel.INFO)
        self.assertEqual(entry.tag, '')
        self.assertEqual(entry.pid, '')
        self.assertEqual(entry.timestamp, '')
        self.assertEqual(entry.message, line)
        self.assertEqual(entry.raw, line)

    def test_blank_lines_produce_no_entry(self):
        self.assertIsNone(self.parser.parse(''))
        self.assertIsNone(self.parser.parse('   \t'))

    def test_parse_lines_preserves_order_and_skips_blanks(self):
        entries = self.parser.parse_lines(['I/A( 1): one', '', 'W/B( 2): two', '  '])

        self.assertEqual([entry.message for entry in entries], ['one', 'two'])


class LogLevelTests(unittest.TestCase):
    def test_rank_follows_fixed_order(self):
        ordered = [LogLevel.parse(letter) for letter in 'VDIWEFS']
        self.assertEqual([level.rank for level in ordered], list(range(7)))

    def test_parse_accepts_names_and_letters(self):
        self.assertIs(LogLevel.parse('e'), LogLevel.ERROR)
        self.assertIs(LogLevel.parse('warn'), LogLevel.WARN)
        self.assertIs(LogLevel.parse('bogus', default=LogLevel.INFO), LogLevel.INFO)
        with self.assertRaises(ValueError):
            LogLevel.parse('bogus')


if __name__ == '__main__':
    unittest.main()
