"""
Seed Top-Level Permissions Script
Creates the missing project_top_level_permissions rows for every member of a
project, using the access tier implied by their project role. Existing rows
are never changed, so the script can be re-run safely.

Usage: python -m app.scripts.seed_top_level_permissions <project_id> [<project_id> ...]
"""

import argparse
import sys

from app.config.permissions_config import PROJECT_ROLE_TOP_LEVEL_ACCESS
from app.core.enums import ProjectRole, TopLevelAccess
from app.database.supabase_client import get_service_supabase, single_row
from app.modules.membership.service import MembershipService
from app.modules.top_level_permissions.service import TopLevelPermissionService
from supabase import Client
from typing import Optional
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def access_for_role(project_role: Optional[str]) -> TopLevelAccess:
    try:
        return PROJECT_ROLE_TOP_LEVEL_ACCESS[ProjectRole(project_role)]
    except ValueError:
        return TopLevelAccess.VIEWER


def seed_project(supabase: Client, project_id: str) -> int:
    """Seed one project; returns how many members were processed without error"""
    project = single_row(
        supabase.table("projects")
        .select("id, created_by")
        .eq("id", project_id)
        .maybe_single()
        .execute()
    )
    if not project:
        logger.warning(f"Project {project_id} not found, skipping")
        return 0

    created_by = project.get("created_by")
    service = TopLevelPermissionService(supabase)
    members = MembershipService(supabase).list_project_members(project_id)
    seeded = 0
    for member in members:
        access = TopLevelAccess.CREATOR if member.user_id == created_by else access_for_role(member.role)
        try:
            service.initialize_defaults(project_id, member.user_id, created_by or member.user_id, access=access)
            seeded += 1
            logger.debug(f"Seeded {access.value} rows for {member.user_id}")
        except Exception as e:
            logger.error(f"Error seeding top-level permissions for {member.user_id} in {project_id}: {e}")

    logger.info(f"Project {project_id}: {seeded} of {len(members)} members seeded")
    return seeded


def main(argv=None):
    """Main function to seed top-level permissions"""
    parser = argparse.ArgumentParser(description="Initialize default top-level permissions for project members")
    parser.add_argument("project_ids", nargs="+", help="Project ids to seed")
    args = parser.parse_args(argv)

    try:
        supabase = get_service_supabase()
        logger.info("Starting top-level permission seeding...")
        total = sum(seed_project(supabase, project_id) for project_id in args.project_ids)
        logger.info(f"Seeding completed: {total} members processed")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
