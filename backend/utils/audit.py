from models import AuditLog, AuditAction
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

def calculate_diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """Calculate the differences between before and after states.
    
    Returns a dict with:
    - added: fields that exist in after but not in before
    - removed: fields that exist in before but not in after
    - changed: fields that exist in both but have different values
    """
    if not before and not after:
        return {}
    
    if not before:
        return {"added": after, "removed": {}, "changed": {}}
    
    if not after:
        return {"added": {}, "removed": before, "changed": {}}
    
    diff = {"added": {}, "removed": {}, "changed": {}}
    
    for key in set(before.keys()) | set(after.keys()):
        if key not in before:
            diff["added"][key] = after[key]
        elif key not in after:
            diff["removed"][key] = before[key]
        elif before[key] != after[key]:
            diff["changed"][key] = {"from": before[key], "to": after[key]}
    
    # Remove empty categories
    return {k: v for k, v in diff.items() if v}

async def create_audit_log(
    db,
    action: AuditAction,
    actor_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    before_state: Optional[Dict[str, Any]] = None,
    after_state: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """Create an audit log entry; a before/after pair is stored as a diff.

    Returns the audit_id, or "" when the write failed.
    """
    try:
        enriched_metadata = metadata.copy() if metadata else {}
        if before_state is not None and after_state is not None:
            diff = calculate_diff(before_state, after_state)
            if diff:
                enriched_metadata["diff"] = diff
        
        audit_log = AuditLog(
            action=action,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=enriched_metadata or None,
        )
        
        await db.audit_logs.insert_one(audit_log.model_dump())
        logger.info(f"Audit log created: {action.value}")
        return audit_log.audit_id
    except Exception as e:
        logger.error(f"Failed to create audit log: {e}")
        # Never fail the main operation due to audit log failure
        return ""
