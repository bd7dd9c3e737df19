# Supabase table: project_top_level_permissions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
project_top_level_permissions:
- id: uuid (primary key)
- project_id: uuid (foreign key to projects.id, not null)
- user_id: uuid (not null)
- entity_type: text (not null) - "forms" | "workflows" | "reports" ("projects" rows exist but are ignored)
- can_create: boolean (default: false)
- can_read: boolean (default: true)
- can_update: boolean (default: false)
- can_delete: boolean (default: false)
- created_by: uuid (not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
- unique constraint on (project_id, user_id, entity_type)

A missing row for an entity type means no access to that type (unless admin).
"""
