from taskflow.notifications.events import InAppNotifier, TaskNotifier, notify_inapp

__all__ = ["InAppNotifier", "TaskNotifier", "notify_inapp"]
