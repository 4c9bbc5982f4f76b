from enum import Enum


class CronSchedule(Enum):
    """
    CRON presets accepted for TRADE_CRON
    """
    EVERY_5_MINUTES = "*/5 * * * *"
    EVERY_15_MINUTES = "*/15 * * * *"
    EVERY_30_MINUTES = "*/30 * * * *"
    EVERY_HOUR = "0 * * * *"
    EVERY_2_HOURS = "0 */2 * * *"
    EVERY_6_HOURS = "0 */6 * * *"
    DAILY_MIDNIGHT = "0 0 * * *"

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def resolve(expression: str) -> str:
        """
        Accepts either a preset name (e.g. "EVERY_HOUR") or a raw
        CRON expression and returns the expression.
        """
        try:
            return str(CronSchedule[expression.strip().upper()])
        except KeyError:
            return expression
