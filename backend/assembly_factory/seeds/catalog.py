"""
Default parts catalog
Flow: DEFAULT_PARTS → seed_catalog() (upsert by code) → parts_catalog.invalidate()

Run directly to seed the configured database:
    python -m assembly_factory.seeds.catalog
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.core.database import transaction
from assembly_factory.core.logging import get_logger
from assembly_factory.core.parts_catalog import parts_catalog
from assembly_factory.models.part import PartStatus, PartType, SystemPart

logger = get_logger(__name__)

FULLSTACK, WIDGET, FORM_INPUT = PartType.FULLSTACK, PartType.WIDGET, PartType.FORM_INPUT

# (code, name, description, type, category, icon, component_path, is_core)
_ROWS = [
    ("bleeptest", "Bleep Test", "VO2 Max fitness assessment", FULLSTACK, "SPORT", "Activity", "@/features/bleep-test/BleepTest", True),
    ("scoring", "Scoring", "Arrow scoring with target face", FULLSTACK, "SPORT", "Target", "@/pages/ScoringPage", True),
    ("attendance", "Attendance", "Check-in/out tracking", FULLSTACK, "ADMIN", "CheckSquare", "@/pages/AttendancePage", True),
    ("finance", "Finance Management", "Invoicing and payments", FULLSTACK, "COMMERCE", "DollarSign", "@/pages/FinancePage", True),
    ("athletes_db", "Athletes Database", "Athlete management", FULLSTACK, "ADMIN", "Users", "@/pages/AthletesPage", True),
    ("schedule", "Training Schedule", "Session scheduling", FULLSTACK, "SPORT", "Calendar", "@/pages/SchedulesPage", True),
    ("inventory", "Inventory", "Equipment management", FULLSTACK, "COMMERCE", "Package", "@/pages/InventoryPage", True),
    ("analytics", "Analytics Dashboard", "Performance analytics", FULLSTACK, "SPORT", "BarChart3", "@/pages/AnalyticsPage", True),
    ("digital_id_card", "Digital ID Card", "Digital identity card", FULLSTACK, "FOUNDATION", "CreditCard", "@/pages/DigitalCardPage", True),
    ("file_manager", "File Manager", "Document management", FULLSTACK, "FOUNDATION", "FolderOpen", "@/pages/FileManagerPage", True),
    ("jersey_shop", "Jersey Shop", "Jersey e-commerce", FULLSTACK, "COMMERCE", "ShoppingBag", "@/features/jersey/JerseyPage", True),
    ("worker_tasks", "Worker Tasks", "Production tasks", FULLSTACK, "COMMERCE", "Wrench", "@/pages/WorkerTasksPage", True),
    ("qc_station", "QC Station", "Quality control", FULLSTACK, "COMMERCE", "ClipboardCheck", "@/pages/QCStationPage", True),
    ("stats_card", "Stats Card", "Single statistic display", WIDGET, "FOUNDATION", "Hash", "@/components/widgets/StatsCard", False),
    ("chart_line", "Line Chart", "Time series chart", WIDGET, "FOUNDATION", "TrendingUp", "@/components/widgets/LineChart", False),
    ("chart_bar", "Bar Chart", "Comparison bar chart", WIDGET, "FOUNDATION", "BarChart", "@/components/widgets/BarChart", False),
    ("recent_activity", "Recent Activity", "Activity feed", WIDGET, "FOUNDATION", "Activity", "@/components/widgets/RecentActivity", False),
    ("quick_actions", "Quick Actions", "Shortcut buttons", WIDGET, "FOUNDATION", "Zap", "@/components/widgets/QuickActions", False),
    ("score_input", "Score Input", "Arrow score input pad", FORM_INPUT, "SPORT", "Target", "@/components/scoring/ScoreInput", False),
    ("date_picker", "Date Picker", "Calendar date selection", FORM_INPUT, "FOUNDATION", "Calendar", "@/components/ui/DatePicker", False),
    ("file_upload", "File Upload", "Drag-and-drop upload", FORM_INPUT, "FOUNDATION", "Upload", "@/components/ui/FileUpload", False),
    ("athlete_selector", "Athlete Selector", "Searchable athlete dropdown", FORM_INPUT, "SPORT", "UserSearch", "@/components/ui/AthleteSelector", False),
    ("qr_scanner", "QR Scanner", "Camera-based QR scanner", FORM_INPUT, "FOUNDATION", "QrCode", "@/components/ui/QRScanner", False),
]

DEFAULT_PARTS: List[Dict[str, Any]] = [
    {
        "code": code,
        "name": name,
        "description": description,
        "functional_type": functional_type,
        "category": category,
        "icon": icon,
        "component_path": component_path,
        "is_core": is_core,
    }
    for code, name, description, functional_type, category, icon, component_path, is_core in _ROWS
]


async def seed_catalog(db: AsyncSession, parts: List[Dict[str, Any]] = DEFAULT_PARTS) -> int:
    """Upsert parts by code; returns the number of newly inserted parts."""
    inserted = 0
    async with transaction(db, "seed_catalog"):
        result = await db.execute(select(SystemPart))
        existing = {part.code: part for part in result.scalars().all()}
        now = datetime.now(timezone.utc)

        for data in parts:
            part = existing.get(data["code"])
            if part is None:
                db.add(SystemPart(id=str(uuid.uuid4()), status=PartStatus.ACTIVE, created_at=now, updated_at=now, **data))
                inserted += 1
                continue
            for key, value in data.items():
                setattr(part, key, value)
            part.updated_at = now

    parts_catalog.invalidate()
    logger.info("Catalog seeded", total=len(parts), inserted=inserted)
    return inserted


async def main() -> None:
    from assembly_factory.core.database import AsyncSessionLocal, create_tables, engine
    from assembly_factory.core.logging import setup_logging

    setup_logging()

    await create_tables()
    async with AsyncSessionLocal() as db:
        await seed_catalog(db)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
