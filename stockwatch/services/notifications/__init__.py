from stockwatch.services.notifications.dispatcher import DispatchReport, NotificationDispatcher
from stockwatch.services.notifications.push import PushSender
from stockwatch.services.notifications.sms import SmsSender, SmsSendResult, format_alert_message

__all__ = [
    "DispatchReport",
    "NotificationDispatcher",
    "PushSender",
    "SmsSender",
    "SmsSendResult",
    "format_alert_message",
]
