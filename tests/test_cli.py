import io
import json
import os
import signal
import threading
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from tempfile import TemporaryDirectory

from logtailor.cli import EXIT_OK, EXIT_RUNTIME_ERROR, EXIT_STARTUP_ERROR, _build_tailer, _parse_args, follow, main
from logtailor.log import reset_warn_state
from logtailor.rate_limiter import TickerRateLimiter
from logtailor.tailer import Tailer
from logtailor.options import with_seek_on_startup


class _SignalsRestored(unittest.TestCase):
    def setUp(self) -> None:
        self._handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}

    def tearDown(self) -> None:
        for sig, h in self._handlers.items():
            signal.signal(sig, h)


class TestBuildTailer(unittest.TestCase):
    def test_flags_override_config_file(self) -> None:
        with TemporaryDirectory() as td:
            cfg = Path(td) / "tail.json"
            cfg.write_text(json.dumps({"poll_timeout_s": 0.3, "update_lag_interval_s": 2}), encoding="utf-8")
            args = _parse_args(["x.log", "--config", str(cfg), "--from-start", "--poll-timeout", "0.05", "--leaky-bucket"])
            t = _build_tailer(args)
            o = t.options
            self.assertEqual((o.run_offset, o.run_whence), (0, os.SEEK_SET))
            self.assertAlmostEqual(o.poll_timeout_s, 0.05)
            self.assertAlmostEqual(o.update_lag_interval_s, 2.0)
            self.assertTrue(o.leaky_bucket)
            self.assertIsNone(o.rate_limiter)

    def test_offset_whence_and_lps(self) -> None:
        args = _parse_args(["x.log", "--offset", "100", "--whence", "start", "--lps", "5"])
        o = _build_tailer(args).options
        self.assertEqual((o.run_offset, o.run_whence), (100, os.SEEK_SET))
        self.assertIsInstance(o.rate_limiter, TickerRateLimiter)
        o.rate_limiter.close()

    def test_unknown_whence_is_rejected(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as cm:
            _parse_args(["x.log", "--whence", "ned"])
        self.assertEqual(cm.exception.code, 2)
        self.assertIn("invalid choice", err.getvalue())


class TestFollow(unittest.TestCase):
    def setUp(self) -> None:
        reset_warn_state()

    def test_prints_trimmed_lines_until_timeout(self) -> None:
        with TemporaryDirectory() as td:
            p = Path(td) / "app.log"
            p.write_bytes(b"a \r\nb\n")
            out = io.StringIO()
            t = Tailer(str(p), with_seek_on_startup(0, os.SEEK_SET))
            code = follow(t, threading.Event(), 0.3, out, raw=False)
            self.assertEqual(code, EXIT_OK)
            self.assertEqual(out.getvalue(), "a\nb\n")

    def test_raw_output(self) -> None:
        with TemporaryDirectory() as td:
            p = Path(td) / "app.log"
            p.write_bytes(b"a \r\nb")
            out = io.StringIO()
            t = Tailer(str(p), with_seek_on_startup(0, os.SEEK_SET))
            code = follow(t, threading.Event(), 1.0, out, raw=True)
            self.assertEqual(code, EXIT_OK)
            self.assertEqual(out.getvalue(), "a \r\nb")

    def test_fatal_error_gives_runtime_exit_code(self) -> None:
        with TemporaryDirectory() as td:
            p = Path(td) / "app.log"
            p.write_bytes(b"1\n")
            t = Tailer(str(p), with_seek_on_startup(0, os.SEEK_SET))
            remover = threading.Timer(0.2, os.remove, args=(p,))
            remover.start()
            err = io.StringIO()
            with redirect_stderr(err):
                code = follow(t, threading.Event(), 20.0, io.StringIO(), raw=False)
            self.assertEqual(code, EXIT_RUNTIME_ERROR)
            self.assertIn("file does not exist", err.getvalue())


class TestMain(_SignalsRestored):
    def test_missing_file_is_startup_error(self) -> None:
        with TemporaryDirectory() as td:
            err = io.StringIO()
            with redirect_stderr(err):
                code = main([str(Path(td) / "nope.log"), "--timeout", "0.1"])
            self.assertEqual(code, EXIT_STARTUP_ERROR)
            self.assertIn("can't start tailing", err.getvalue())

    def test_follows_from_start(self) -> None:
        with TemporaryDirectory() as td:
            p = Path(td) / "app.log"
            p.write_bytes(b"1\n2\n3\n")
            out = io.StringIO()
            err = io.StringIO()
            with redirect_stdout(out), redirect_stderr(err):
                code = main([str(p), "--from-start", "--timeout", "0.3", "--show-lag"])
            self.assertEqual(code, EXIT_OK)
            self.assertEqual(out.getvalue().splitlines(), ["1", "2", "3"])
            self.assertIn("lag=0", err.getvalue())


if __name__ == "__main__":
    unittest.main()
