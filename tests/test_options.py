import json
import os
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from logtailor.options import (
    TailerOptions,
    build_options,
    load_options,
    parse_whence,
    with_leaky_bucket,
    with_poll_timeout,
    with_rate_limiter,
    with_read_buffer_size,
    with_seek_on_reopen,
    with_seek_on_startup,
    with_update_lag_interval,
)
from logtailor.rate_limiter import NoopRateLimiter, TickerRateLimiter


class TestBuildOptions(unittest.TestCase):
    def test_defaults(self) -> None:
        o = build_options()
        self.assertEqual((o.run_offset, o.run_whence), (0, os.SEEK_END))
        self.assertEqual((o.reopen_offset, o.reopen_whence), (0, os.SEEK_SET))
        self.assertEqual(o.read_buffer_size, 4096)
        self.assertAlmostEqual(o.poll_timeout_s, 0.01)
        self.assertAlmostEqual(o.update_lag_interval_s, 5.0)
        self.assertIsNone(o.rate_limiter)
        self.assertFalse(o.leaky_bucket)

    def test_each_option(self) -> None:
        rl = NoopRateLimiter()
        o = build_options(
            with_seek_on_startup(10, os.SEEK_SET),
            with_seek_on_reopen(-5, os.SEEK_END),
            with_read_buffer_size(1 << 16),
            with_poll_timeout(0.25),
            with_update_lag_interval(1.5),
            with_rate_limiter(rl),
            with_leaky_bucket(),
        )
        self.assertEqual((o.run_offset, o.run_whence), (10, os.SEEK_SET))
        self.assertEqual((o.reopen_offset, o.reopen_whence), (-5, os.SEEK_END))
        self.assertEqual(o.read_buffer_size, 1 << 16)
        self.assertAlmostEqual(o.poll_timeout_s, 0.25)
        self.assertAlmostEqual(o.update_lag_interval_s, 1.5)
        self.assertIs(o.rate_limiter, rl)
        self.assertTrue(o.leaky_bucket)

    def test_later_option_overrides_earlier(self) -> None:
        o = build_options(with_poll_timeout(1.0), with_poll_timeout(0.5))
        self.assertAlmostEqual(o.poll_timeout_s, 0.5)

    def test_options_are_immutable(self) -> None:
        o = build_options()
        with self.assertRaises(Exception):
            o.leaky_bucket = True  # type: ignore[misc]


class TestParseWhence(unittest.TestCase):
    def test_names_and_ints(self) -> None:
        self.assertEqual(parse_whence("start"), os.SEEK_SET)
        self.assertEqual(parse_whence("Current"), os.SEEK_CUR)
        self.assertEqual(parse_whence(" end "), os.SEEK_END)
        self.assertEqual(parse_whence(os.SEEK_END), os.SEEK_END)
        self.assertEqual(parse_whence(str(os.SEEK_CUR)), os.SEEK_CUR)

    def test_unknown_falls_back(self) -> None:
        self.assertEqual(parse_whence("sideways", os.SEEK_END), os.SEEK_END)
        self.assertEqual(parse_whence(None, os.SEEK_CUR), os.SEEK_CUR)
        self.assertEqual(parse_whence(True, os.SEEK_SET), os.SEEK_SET)
        self.assertEqual(parse_whence(42, os.SEEK_SET), os.SEEK_SET)


class TestOptionsFromDict(unittest.TestCase):
    def test_coerces_and_defaults(self) -> None:
        o = TailerOptions.from_dict(
            {
                "run_offset": "12",
                "run_whence": "start",
                "reopen_whence": "end",
                "read_buffer_size": "8192.0",
                "poll_timeout_s": "0.5",
                "update_lag_interval_s": "bad",
                "leaky_bucket": 1,
            }
        )
        self.assertEqual((o.run_offset, o.run_whence), (12, os.SEEK_SET))
        self.assertEqual((o.reopen_offset, o.reopen_whence), (0, os.SEEK_END))
        self.assertEqual(o.read_buffer_size, 8192)
        self.assertAlmostEqual(o.poll_timeout_s, 0.5)
        self.assertAlmostEqual(o.update_lag_interval_s, 5.0)
        self.assertTrue(o.leaky_bucket)
        self.assertIsNone(o.rate_limiter)

    def test_lines_per_second_attaches_ticker(self) -> None:
        o = TailerOptions.from_dict({"lines_per_second": "20"})
        self.assertIsInstance(o.rate_limiter, TickerRateLimiter)
        try:
            self.assertAlmostEqual(o.to_dict()["lines_per_second"], 20.0)
        finally:
            o.rate_limiter.close()

    def test_to_dict_roundtrip_of_plain_fields(self) -> None:
        o = build_options(with_seek_on_startup(3, os.SEEK_CUR), with_leaky_bucket())
        d = o.to_dict()
        self.assertEqual(d["run_whence"], "current")
        self.assertEqual(TailerOptions.from_dict(d), o)

    def test_non_dict_gives_defaults(self) -> None:
        self.assertEqual(TailerOptions.from_dict([]), TailerOptions())  # type: ignore[arg-type]


class TestLoadOptions(unittest.TestCase):
    def test_load_from_json(self) -> None:
        with TemporaryDirectory() as td:
            p = Path(td) / "tail.json"
            p.write_text(json.dumps({"run_whence": "start", "poll_timeout_s": 0.2}) + "\n", encoding="utf-8")
            o = load_options(p)
            self.assertEqual(o.run_whence, os.SEEK_SET)
            self.assertAlmostEqual(o.poll_timeout_s, 0.2)

    def test_missing_or_malformed_gives_defaults(self) -> None:
        with TemporaryDirectory() as td:
            self.assertEqual(load_options(Path(td) / "nope.json"), TailerOptions())
            bad = Path(td) / "bad.json"
            bad.write_text("{not json", encoding="utf-8")
            self.assertEqual(load_options(bad), TailerOptions())
            arr = Path(td) / "arr.json"
            arr.write_text("[1, 2]", encoding="utf-8")
            self.assertEqual(load_options(arr), TailerOptions())


if __name__ == "__main__":
    unittest.main()
