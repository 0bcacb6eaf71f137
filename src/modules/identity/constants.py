"""Identity constants: permission names carried in the JWT ``permissions`` claim."""

PERMISSION_INTEGRATION = "integration"
PERMISSION_ADMIN = "admin"
PERMISSION_STAFF = "staff"

# Identities allowed to rewrite an order's approver set without the participant guard
PRIVILEGED_PARTICIPANT_EDITORS = (
    PERMISSION_ADMIN,
    PERMISSION_STAFF,
    PERMISSION_INTEGRATION,
)
