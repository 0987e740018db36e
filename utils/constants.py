"""
utils/constants.py

Purpose: Centralized static values

- Roles, handles and enum-like choices
- File upload allow-list
- Bulk import sheet headers
- Reusable user-facing messages

(Prevents hardcoding across the codebase)
"""

# ============================================================
# USERS
# ============================================================

ROLE_ADMIN = "ADMIN"
ROLE_GENERAL = "GENERAL"
ROLE_VIEWER = "VIEWER"
ROLES = (ROLE_ADMIN, ROLE_GENERAL, ROLE_VIEWER)

HANDLES = ("CRM", "PURCHASE", "PRODUCTION", "SALES")

# Department roles a user may hold in addition to the account role.
# File visibility is granted per department role; GENERAL grants nothing.
ROLE_ENUM = ROLES + HANDLES + ("ACCOUNTS", "HR")

# ============================================================
# CRM
# ============================================================

MAX_CLIENTS_PER_SHEET_ROW = 5

# ============================================================
# TASKS
# ============================================================

CLOSED_OPPORTUNITY_STATUSES = ("Won", "Lost", "Discontinued")

# ============================================================
# INVOICES
# ============================================================

DEFAULT_INVOICE_NUMBER_FORMAT = "APP/{FY}/{SEQ4}"

EINVOICE_GENERATED = "GENERATED"
EINVOICE_CANCELLED = "CANCELLED"

WHITEBOOKS_AUTH_OK = "Sucess"
WHITEBOOKS_OK = "1"

# ============================================================
# FILES
# ============================================================

ALLOWED_UPLOAD_MIME_TYPES = (
    "application/pdf",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/csv",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/png",
    "image/jpeg",
    "image/gif",
)

EXCEL_MIME_TYPES = (
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)

FILE_SORT_FIELDS = ("createdAt", "fileName", "fileSize", "originalName")

# ============================================================
# BULK IMPORT SHEETS
# ============================================================

COMPANY_SHEET_HEADERS = [
    "Company Name*",
    "Brand Name",
    "GSTIN",
    "Company Address",
    "Pincode*",
] + [
    f"Client {n} {part}"
    for n in range(1, MAX_CLIENTS_PER_SHEET_ROW + 1)
    for part in ("Name", "Department", "Email", "Contact")
]

# ============================================================
# MESSAGES
# ============================================================

MSG_COMPANY_EXISTS = "Company already exists"
MSG_NOT_AUTHENTICATED = "Not authenticated"
MSG_INVALID_TOKEN = "Invalid or expired token"
MSG_ADMIN_ONLY = "Admin access required"
MSG_SUPER_ADMIN_ONLY = "Super admin access required"
MSG_EINVOICE_NOT_INITIATED = "E-Invoice not initiated (authenticate first)"
