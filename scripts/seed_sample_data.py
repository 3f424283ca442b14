"""Seed script to populate dev database with a demo workspace and imports."""

import asyncio

from sqlalchemy import select

from app.database import async_session_factory, create_all
from app.models import Workspace, WorkspaceMember
from app.models.import_log import ImportSource
from app.models.workspace import WorkspaceRole
from app.services.ugc_importer import UgcImporter

SAMPLE_ROWS = [
    {
        "post_url": "https://www.tiktok.com/@glowwithmia/video/7301",
        "platform": "TIKTOK",
        "creator_handle": "glowwithmia",
        "creator_name": "Mia",
        "caption": "Morning routine with my new serum #skincare #GRWM",
        "posted_at": "2024-05-02T08:15:00Z",
    },
    {
        "post_url": "https://www.instagram.com/p/Cx12ab/",
        "platform": "instagram",
        "creator_handle": "@runwithsam",
        "caption": "Week 3 of training, these shoes are holding up",
        "hashtags": "#running, marathon,  #GearReview",
    },
    {
        "post_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "platform": "YouTube",
        "creator_handle": "techbytes",
        "caption": "Unboxing the new headphones #unboxing",
    },
    {
        # Invalid on purpose, shows up as a validation failure in the log
        "post_url": "not-a-url",
        "platform": "TIKTOK",
        "creator_handle": "broken_row",
    },
]


async def seed_database():
    """Seed the database with sample data for development."""

    await create_all()

    async with async_session_factory() as db:
        # Check if we already have data
        existing = await db.execute(select(Workspace).limit(1))
        if existing.scalar_one_or_none():
            print("Database already has data. Skipping seed.")
            return

        print("Seeding database with sample data...")

        workspace = Workspace(name="Demo Brand", slug="demo-brand")
        db.add(workspace)
        await db.flush()

        db.add_all(
            [
                WorkspaceMember(
                    workspace_id=workspace.id,
                    user_id="demo-owner",
                    email="owner@demo-brand.test",
                    role=WorkspaceRole.OWNER.value,
                ),
                WorkspaceMember(
                    workspace_id=workspace.id,
                    user_id="demo-analyst",
                    email="analyst@demo-brand.test",
                    role=WorkspaceRole.ANALYST.value,
                ),
            ]
        )
        await db.commit()
        print(f"Created workspace: {workspace.name} (slug: {workspace.slug})")

        importer = UgcImporter(db)
        result = await importer.run_import(
            workspace.id, ImportSource.CSV, SAMPLE_ROWS, metadata={"seed": True}
        )
        print(f"Sample CSV import: {result.message} (status: {result.status.value})")

        print("\nDatabase seeded successfully!")
        print("\nUse these values for testing:")
        print(f"  Workspace slug: {workspace.slug}")
        print("  X-User-Id:      demo-owner (write) / demo-analyst (read only)")
        print(f"  Import log ID:  {result.import_log_id}")


if __name__ == "__main__":
    asyncio.run(seed_database())
