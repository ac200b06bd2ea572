from core.errors import Forbidden

def has_role(user, role_name: str) -> bool:
    if not user:
        return False
    return any(r.name == role_name for r in user.roles)

def is_admin(user) -> bool:
    return has_role(user, "ADMIN")

def require_admin(user):
    if not is_admin(user):
        raise Forbidden("Access denied")

def require_owner(user, booking):
    """
    Only the customer who made the booking (reviews, reschedule acceptance).
    """
    if user is None or booking.user_id != user.id:
        raise Forbidden("Access denied")

def require_owner_or_admin(user, booking):
    if user is None:
        raise Forbidden("Access denied")
    if booking.user_id != user.id and not is_admin(user):
        raise Forbidden("Access denied")
