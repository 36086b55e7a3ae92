"""
Error reporting and logging tests
"""

import logging
import unittest

from keysynth.errors import (
    CaptureTimeoutError,
    DecodeError,
    EncodeError,
    ErrorReporter,
    ErrorSeverity,
    FormatError,
    KeySynthError,
    UnavailableError,
)
from keysynth.logging import ColorFormatter, setup_logging


class TestErrorTaxonomy(unittest.TestCase):

    def test_all_errors_share_base(self):
        for cls in (UnavailableError, DecodeError, FormatError, CaptureTimeoutError, EncodeError):
            self.assertTrue(issubclass(cls, KeySynthError))

    def test_kinds_are_distinct(self):
        with self.assertRaises(DecodeError):
            try:
                raise DecodeError("bad")
            except FormatError:
                self.fail("DecodeError caught as FormatError")


class TestErrorReporter(unittest.TestCase):

    def setUp(self):
        self.reporter = ErrorReporter(max_history=3)

    def test_report_logs_once(self):
        with self.assertLogs('keysynth.errors', level='WARNING') as cm:
            ctx = self.reporter.report(UnavailableError("no output"), 'recording')
        self.assertEqual(len(cm.records), 1)
        self.assertEqual(cm.records[0].levelno, logging.ERROR)
        self.assertEqual(ctx.user_message, "Audio Output Unavailable")
        self.assertTrue(ctx.solutions)

    def test_severity_selects_level(self):
        with self.assertLogs('keysynth.errors', level='WARNING') as cm:
            self.reporter.report(DecodeError("x"), 'recording', ErrorSeverity.LOW)
            self.reporter.report(DecodeError("x"), 'recording', ErrorSeverity.CRITICAL)
        self.assertEqual([r.levelno for r in cm.records], [logging.WARNING, logging.CRITICAL])

    def test_messages_per_kind(self):
        with self.assertLogs('keysynth.errors'):
            messages = [
                self.reporter.report(err, 'recording').user_message
                for err in (CaptureTimeoutError(), DecodeError(), FormatError(), EncodeError(),
                            PermissionError(), OSError(), ValueError())
            ]
        self.assertEqual(len(set(messages)), len(messages))

    def test_statistics_and_bounded_history(self):
        with self.assertLogs('keysynth.errors'):
            for _ in range(4):
                self.reporter.report(FormatError("stereo"), 'recording')
            self.reporter.report(OSError("disk"), 'sink')

        stats = self.reporter.get_error_statistics()
        self.assertEqual(stats['total_errors'], 5)
        self.assertEqual(stats['error_counts'], {'recording': 4, 'sink': 1})
        self.assertEqual(len(self.reporter.error_history), 3)

        self.reporter.reset_statistics()
        self.assertEqual(self.reporter.get_error_statistics()['total_errors'], 0)

    def test_format_error_box(self):
        with self.assertLogs('keysynth.errors'):
            ctx = self.reporter.report(CaptureTimeoutError("10.0s"), 'recording',
                                       details={'chunks': 12})
        text = self.reporter.format_error(ctx)
        self.assertIn("Recording Did Not Finish", text)
        self.assertIn("chunks: 12", text)
        lines = text.splitlines()
        self.assertTrue(all(len(line) == len(lines[0]) for line in lines))


class TestLogging(unittest.TestCase):

    def tearDown(self):
        logging.getLogger('keysynth').handlers.clear()

    def test_color_formatter_leaves_record_plain(self):
        record = logging.LogRecord('keysynth', logging.ERROR, __file__, 1, "boom", None, None)
        colored = ColorFormatter('%(levelname)s %(message)s', use_colors=True).format(record)
        self.assertIn('\033[', colored)
        self.assertEqual(record.levelname, 'ERROR')

        plain = ColorFormatter('%(levelname)s %(message)s', use_colors=False).format(record)
        self.assertEqual(plain, 'ERROR boom')

    def test_setup_logging_with_file(self):
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "logs" / "keysynth.log"
            logger = setup_logging(verbose=True, log_file=log_file)
            self.assertEqual(logger.level, logging.DEBUG)
            self.assertEqual(len(logger.handlers), 2)

            logger.info("hello")
            for handler in logger.handlers:
                handler.flush()
            self.assertIn("hello", log_file.read_text())

            for handler in logger.handlers:
                handler.close()


if __name__ == '__main__':
    unittest.main()
