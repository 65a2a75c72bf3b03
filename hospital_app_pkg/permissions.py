# hospital_app_pkg/permissions.py
# Role -> permission mapping. Permissions are resolved from the user's roles on
# every request, so role changes take effect without re-issuing tokens.

ROLES = [
    'admin', 'doctor', 'nurse', 'lab_tech', 'pharmacist',
    'receptionist', 'cashier', 'radiologist', 'manager',
]

FIRST_USER_ROLE = 'admin'
DEFAULT_ROLE = 'receptionist'

# Every authenticated staff member gets these.
BASE_PERMISSIONS = {
    'user:profile:read',
    'dashboard:read',
    'patient:read',
    'queue:read',
    'triage:read',
    'bed:read',
    'alert:read',
    'alert:create',
    'appointment:read',
    'activity:read',
    'activity:create',
}

CLINICAL_PERMISSIONS = {
    'queue:write',
    'triage:write',
    'patient:write',
    'alert:update',
}

ROLE_PERMISSIONS = {
    'doctor': CLINICAL_PERMISSIONS | {'appointment:write', 'bed:write'},
    'nurse': CLINICAL_PERMISSIONS | {'bed:write'},
    'lab_tech': {'queue:write'},
    'pharmacist': {'queue:write'},
    'radiologist': {'queue:write'},
    'receptionist': {'patient:write', 'queue:write', 'appointment:write'},
    'cashier': {'queue:write', 'revenue:read', 'revenue:write'},
    'manager': {'revenue:read', 'bed:write', 'alert:update', 'appointment:write'},
}

ADMIN_ONLY_PERMISSIONS = {
    'patient:delete',
    'queue:delete',
    'triage:delete',
    'bed:delete',
    'appointment:delete',
}

ALL_PERMISSIONS = set(BASE_PERMISSIONS).union(ADMIN_ONLY_PERMISSIONS, *ROLE_PERMISSIONS.values())


def permissions_for_roles(roles):
    if 'admin' in roles:
        return set(ALL_PERMISSIONS)
    perms = set(BASE_PERMISSIONS)
    for role in roles:
        perms |= ROLE_PERMISSIONS.get(role, set())
    return perms
