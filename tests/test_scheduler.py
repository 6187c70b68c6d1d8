import time
import unittest
from datetime import datetime, timezone

from core.scheduler import SchedulerConfig, SimpleCron, SweepScheduler


class DummyController:
    def __init__(self) -> None:
        self.started = []
        self.force_running = False

    def start(self, operation: str = "sweep") -> bool:
        if self.force_running:
            return False
        self.started.append(operation)
        return True


class SweepSchedulerTest(unittest.TestCase):
    def test_interval_scheduler_triggers_controller(self) -> None:
        controller = DummyController()
        cfg = SchedulerConfig(enabled=True, interval_minutes=0.001)
        scheduler = SweepScheduler(controller, cfg)
        scheduler.start()
        time.sleep(0.2)
        scheduler.stop()
        self.assertGreaterEqual(len(controller.started), 1)
        self.assertEqual({"sweep"}, set(controller.started))

    def test_scheduler_skips_when_controller_busy(self) -> None:
        controller = DummyController()
        controller.force_running = True
        cfg = SchedulerConfig(enabled=True, interval_minutes=0.001)
        scheduler = SweepScheduler(controller, cfg)
        scheduler.start()
        time.sleep(0.05)
        scheduler.stop()
        self.assertEqual([], controller.started)

    def test_disabled_scheduler_never_starts(self) -> None:
        scheduler = SweepScheduler(DummyController(), SchedulerConfig(enabled=False))
        scheduler.start()
        self.assertIsNone(scheduler._thread)

    def test_cron_expression_generates_wait_time(self) -> None:
        cfg = SchedulerConfig(enabled=True, cron="*/5 * * * *", timezone="UTC")
        scheduler = SweepScheduler(DummyController(), cfg)
        wait = scheduler._next_interval_seconds()
        self.assertGreater(wait, 0)
        self.assertLessEqual(wait, 5 * 60)

    def test_config_from_mapping(self) -> None:
        cfg = SchedulerConfig.from_mapping(
            {"enabled": True, "interval_minutes": "-3", "cron": "  ", "timezone": "Nowhere/City"}
        )
        self.assertTrue(cfg.enabled)
        self.assertIsNone(cfg.interval_minutes)
        self.assertIsNone(cfg.cron)
        self.assertEqual("sweep", cfg.operation)
        scheduler = SweepScheduler(DummyController(), cfg)
        self.assertIs(timezone.utc, scheduler._tzinfo)


class SimpleCronTest(unittest.TestCase):
    def test_next_after_daily_time(self) -> None:
        cron = SimpleCron("30 6 * * *")
        self.assertEqual(
            datetime(2024, 5, 2, 6, 30),
            cron.next_after(datetime(2024, 5, 1, 7, 0)),
        )

    def test_weekday_uses_sunday_as_zero(self) -> None:
        # 2024-05-01 is a Wednesday
        self.assertEqual(
            datetime(2024, 5, 5, 0, 0),
            SimpleCron("0 0 * * 0").next_after(datetime(2024, 5, 1, 12, 0)),
        )
        self.assertEqual(
            datetime(2024, 5, 5, 0, 0),
            SimpleCron("0 0 * * 7").next_after(datetime(2024, 5, 1, 12, 0)),
        )
        self.assertEqual(
            datetime(2024, 5, 6, 9, 0),
            SimpleCron("0 9 * * 1").next_after(datetime(2024, 5, 1, 12, 0)),
        )

    def test_ranges_and_lists(self) -> None:
        cron = SimpleCron("0 8-10,18 * * *")
        self.assertEqual({8, 9, 10, 18}, cron.hours)
        self.assertIsNone(cron.days)

    def test_invalid_expression(self) -> None:
        with self.assertRaises(ValueError):
            SimpleCron("* * *")


if __name__ == "__main__":
    unittest.main()
