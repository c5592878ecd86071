import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    TECHNICIAN = "TECHNICIAN"
    CUSTOMER = "CUSTOMER"


_ROLE_RANK = {
    UserRole.CUSTOMER: 0,
    UserRole.TECHNICIAN: 1,
    UserRole.ADMIN: 2,
}


def has_at_least(role: UserRole | str, required: UserRole) -> bool:
    """ADMIN includes TECHNICIAN includes CUSTOMER. Unknown roles have no rank."""
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return _ROLE_RANK[role] >= _ROLE_RANK[required]
