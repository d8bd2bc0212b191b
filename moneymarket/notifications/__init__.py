from .telegram import TelegramNotifier, format_result

__all__ = ["TelegramNotifier", "format_result"]
