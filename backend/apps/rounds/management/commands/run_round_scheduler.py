from __future__ import annotations

from django.core.management.base import BaseCommand

from apps.rounds.scheduler import RoundScheduler


class Command(BaseCommand):
    help = "在当前进程内运行轮次调度器（不使用 Celery beat 时的替代方案），--once 只执行一次 tick"

    def add_arguments(self, parser):
        parser.add_argument("--interval", type=float, default=None, help="tick 间隔秒数，默认读取 ROUND_TICK_INTERVAL_SECONDS")
        parser.add_argument("--once", action="store_true", help="只执行一次 tick 与提醒后退出")

    def handle(self, *args, **options):
        scheduler = RoundScheduler(interval=options["interval"])
        if options["once"]:
            summary = scheduler.tick()
            sent = scheduler.send_reminders()
            self.stdout.write(self.style.SUCCESS(
                f"tick 完成：结束 {len(summary['ended'])}，关闭 {len(summary['closed'])}，"
                f"等待评委 {len(summary['waiting'])}，失败 {len(summary['failed'])}，提醒 {sent}"
            ))
            return
        self.stdout.write(self.style.WARNING(f"轮次调度器运行中，间隔 {scheduler.interval} 秒，Ctrl+C 退出"))
        scheduler.start()
        try:
            while scheduler.is_running:
                scheduler.wait(1.0)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop(timeout=scheduler.interval)
        self.stdout.write(self.style.SUCCESS("轮次调度器已退出"))
