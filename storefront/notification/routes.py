from flask import g

from ..extensions import db
from ..model import Notification
from ..utils.api import err, ok
from ..utils.decorators import login_required
from . import bp


@bp.get("")
@login_required
def get_notifications():
    notes = (Notification.query.filter_by(user_id=g.user.id)
             .order_by(Notification.id.desc())
             .limit(50).all())
    return ok("notifications", {"items": [n.as_api() for n in notes]})


@bp.put("/<int:note_id>/read")
@login_required
def mark_as_read(note_id):
    note = Notification.query.filter_by(id=note_id, user_id=g.user.id).first()
    if not note:
        return err("Notification not found", 404)
    note.is_read = True
    db.session.commit()
    return ok("Marked as read")
