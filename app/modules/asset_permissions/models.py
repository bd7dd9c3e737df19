# Supabase table: asset_permissions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
asset_permissions:
- id: uuid (primary key)
- project_id: uuid (foreign key to projects.id, not null)
- user_id: uuid (not null)
- asset_type: text (not null) - "form" | "report" | "workflow"
- asset_id: uuid (not null)
- permission_type: text (not null) - form catalog id for forms,
  "view" | "edit" | "delete" | "share" (+ "start_instances" for workflows) otherwise
- granted_by: uuid (nullable)
- granted_at: timestamp (default: now())
- unique constraint on (project_id, user_id, asset_type, asset_id, permission_type)

Existence of a row is the grant. There is no revoked state; revoking deletes the row.
"""
