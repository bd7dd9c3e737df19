# Supabase table: permission_audit_log
# Written by PermissionAuditService; never read by the access engine itself.

"""
permission_audit_log:
- id: uuid (primary key)
- project_id: uuid (nullable, null for organization-level role assignments)
- user_id: uuid (not null) - the user whose access changed
- permission_type: text (not null) - named permission ("manage_access"), "form_permissions",
  "report_access", "workflow_access" or "organization_role_assignment"
- action: text (not null) - "grant" | "revoke" | "bulk_update" | "access_change" | "assign" | "unassign"
- permission_details: jsonb - asset/role ids, access level, change set; always carries "timestamp"
- changed_by: uuid (nullable)
- created_at: timestamp (default: now())
"""
