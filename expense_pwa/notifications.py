# expense_pwa/notifications.py
from datetime import datetime

from . import db

NOTIFICATION_TYPES = ("expense", "budget", "system", "group")


def add_notification(user_id, title, message="", type="system"):
    if type not in NOTIFICATION_TYPES:
        type = "system"
    return db.execute_db(
        "INSERT INTO notifications (user_id, title, message, type, timestamp, read) VALUES (?,?,?,?,?,0)",
        (user_id, title, message, type, datetime.now().isoformat()),
    )


def get_notifications(user_id):
    """User's notifications, newest first."""
    rows = db.query_db(
        "SELECT id, title, message, type, timestamp, read FROM notifications "
        "WHERE user_id=? ORDER BY timestamp DESC, id DESC",
        (user_id,),
    )
    results = []
    for r in rows:
        item = dict(r)
        item["timestamp"] = datetime.fromisoformat(item["timestamp"])
        item["read"] = bool(item["read"])
        results.append(item)
    return results


def mark_notification_as_read(user_id, notification_id):
    row = db.query_db(
        "SELECT id FROM notifications WHERE id=? AND user_id=?", (notification_id, user_id), one=True
    )
    if not row:
        return False
    db.execute_db("UPDATE notifications SET read=1 WHERE id=?", (notification_id,))
    return True


def clear_all_notifications(user_id):
    db.execute_db("DELETE FROM notifications WHERE user_id=?", (user_id,))


def unread_count(user_id):
    row = db.query_db(
        "SELECT COUNT(*) AS count FROM notifications WHERE user_id=? AND read=0", (user_id,), one=True
    )
    return row["count"] if row else 0
