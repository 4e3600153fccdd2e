from typing import Optional

from engine.models import ApprovalLog, User


def log_approval(*, actor: Optional[User], actor_role: str, target_type: str, target_id: int, action: str,
                 previous_status: Optional[str], new_status: str, reason: Optional[str] = None) -> ApprovalLog:
    """Append one approval trail entry.

    Callers invoke this inside the transaction that writes the status, so
    the entry and the transition commit or roll back together.
    """
    return ApprovalLog.objects.create(
        actor=actor if getattr(actor, 'pk', None) else None,
        actor_role=actor_role,
        target_type=target_type,
        target_id=target_id,
        action=action,
        reason=reason or '',
        previous_status=previous_status,
        new_status=new_status,
    )


def approval_history(target_type: str, target_id: int) -> list[dict]:
    entries = ApprovalLog.objects.filter(target_type=target_type, target_id=target_id).order_by('timestamp', 'id')
    return [format_entry(e) for e in entries]


def format_entry(entry: ApprovalLog) -> dict:
    return {
        'id': entry.id,
        'actorId': entry.actor_id,
        'actorRole': entry.actor_role,
        'targetType': entry.target_type,
        'targetId': entry.target_id,
        'action': entry.action,
        'reason': entry.reason,
        'previousStatus': entry.previous_status,
        'newStatus': entry.new_status,
        'timestamp': entry.timestamp.isoformat(),
    }
