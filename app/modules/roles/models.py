# Supabase tables: roles, role_permissions, user_role_assignments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

roles:
- id: uuid (primary key)
- organization_id: uuid (foreign key to organizations.id, not null)
- name: text (not null) - unique per organization
- description: text (nullable)
- top_level_access: text (not null, default: 'viewer') - "creator" | "editor" | "viewer" | "no_access"
- created_by: uuid (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

role_permissions:
- id: uuid (primary key)
- role_id: uuid (foreign key to roles.id, not null)
- resource_type: text (not null) - "project" | "form" | "workflow" | "report"
- resource_id: uuid (nullable) - null grants the action on every resource of the type
- permission_type: text (not null) - "create" | "read" | "update" | "delete"
- created_at: timestamp (default: now())
- no uniqueness constraint; duplicate rows are redundant grants

user_role_assignments:
- id: uuid (primary key)
- user_id: uuid (not null)
- role_id: uuid (foreign key to roles.id, not null)
- assigned_by: uuid (nullable)
- assigned_at: timestamp (default: now())
- unique constraint on (user_id, role_id)

Deleting a role removes its role_permissions first. Assignments are left in
place and stop resolving to any permission.
"""
