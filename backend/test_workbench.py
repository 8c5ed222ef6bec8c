"""
Tests for the factory workbench: staging → commit → lifecycle → two-phase delete
"""

import pytest

from assembly_factory.core.delete_confirmation import DeleteConfirmation, DeleteOutcome
from assembly_factory.core.exceptions import AssemblyLockedError, NotFoundError, StoreError, ValidationError
from assembly_factory.core.renderer import BlockKind
from assembly_factory.models.assembly import AssemblyStatus
from assembly_factory.services.assembly_service import AssemblyService
from assembly_factory.services.workbench import FactoryWorkbench


@pytest.fixture
async def workbench(seeded_db, fake_clock):
    bench = FactoryWorkbench(confirmation=DeleteConfirmation(3.0, clock=fake_clock))
    await bench.load(seeded_db)
    return bench


def staged(bench):
    return [(instance.part_code, instance.sort_order) for instance in bench.staging.instances]


async def test_athlete_view_walkthrough(workbench, seeded_db):
    scoring = workbench.stage("scoring")
    assert staged(workbench) == [("scoring", 0)]
    schedule = workbench.stage("schedule")
    assert staged(workbench) == [("scoring", 0), ("schedule", 1)]
    assert workbench.reorder_staging([schedule.instance_id, scoring.instance_id])
    assert staged(workbench) == [("schedule", 0), ("scoring", 1)]

    assembly = await workbench.commit(seeded_db, "Athlete View", "ATHLETE")
    assert assembly.status == AssemblyStatus.DRAFT
    assert assembly.code == "athlete_view_v1"
    assert [part.part_code for part in assembly.parts] == ["schedule", "scoring"]
    assert len(workbench.staging) == 0
    assert [a.id for a in workbench.assembly_list] == [assembly.id]

    assert (await workbench.approve(seeded_db, assembly.id)).status == AssemblyStatus.APPROVED
    assert (await workbench.deploy(seeded_db, assembly.id)).status == AssemblyStatus.DEPLOYED

    ids = [part.id for part in assembly.parts]
    with pytest.raises(AssemblyLockedError):
        await workbench.assemblies.reorder(seeded_db, assembly.id, list(reversed(ids)))
    with pytest.raises(AssemblyLockedError):
        await workbench.open_assembly(seeded_db, assembly.id)
    assert len(workbench.staging) == 0

    assert (await workbench.rollback(seeded_db, assembly.id)).status == AssemblyStatus.APPROVED
    reordered = await workbench.assemblies.reorder(seeded_db, assembly.id, list(reversed(ids)))
    assert [part.part_code for part in reordered.parts] == ["scoring", "schedule"]


async def test_staging_rejections_are_no_ops(workbench):
    first = workbench.stage("scoring")
    assert workbench.stage("scoring") is None
    assert not workbench.reorder_staging(["nope"])
    assert not workbench.unstage("nope")
    assert not workbench.select_instance("nope")
    assert staged(workbench) == [("scoring", 0)]
    assert workbench.staging.get(first.instance_id).config["default_distance"] == 70

    with pytest.raises(NotFoundError):
        workbench.stage("ghost_part")


async def test_configure_selected_instance_and_preview(workbench):
    workbench.stage("scoring")
    stats = workbench.stage("stats_card")
    assert workbench.edit_surface() is None

    with pytest.raises(NotFoundError):
        workbench.configure({"title": "Athletes"})

    assert workbench.select_instance(stats.instance_id)
    names = [field.name for field in workbench.edit_surface().fields]
    assert names[:2] == ["title", "value"]

    updated = workbench.configure({"title": "Archers"})
    assert updated.config["title"] == "Archers"

    with pytest.raises(ValidationError):
        workbench.configure({"trend_color": "pink"})
    assert workbench.staging.get(stats.instance_id).config["trend_color"] == "emerald"

    blocks = workbench.preview()
    assert [block.part_code for block in blocks] == ["scoring", "stats_card"]
    assert blocks[1].kind == BlockKind.BESPOKE
    assert blocks[1].props["title"] == "Archers"


async def test_commit_failure_keeps_staging(workbench, seeded_db):
    workbench.stage("scoring")
    workbench.stage("schedule")
    before = workbench.staging.instances

    with pytest.raises(ValidationError):
        await workbench.commit(seeded_db, "   ", "ATHLETE")
    assert workbench.staging.instances == before
    assert workbench.assembly_list == []


async def test_store_failure_keeps_staging(seeded_db, fake_clock):
    class UnavailableStore(AssemblyService):
        async def create_assembly(self, db, **kwargs):
            raise StoreError("Store unavailable during 'create_assembly', retry", operation="create_assembly")

    bench = FactoryWorkbench(assemblies=UnavailableStore(), confirmation=DeleteConfirmation(3.0, clock=fake_clock))
    await bench.load(seeded_db)
    bench.stage("scoring")

    with pytest.raises(StoreError) as exc_info:
        await bench.commit(seeded_db, "Athlete View", "ATHLETE")
    assert exc_info.value.details["retryable"] is True
    assert staged(bench) == [("scoring", 0)]


async def test_open_and_save_existing_assembly(workbench, seeded_db):
    workbench.stage("scoring")
    assembly = await workbench.commit(seeded_db, "Coach Board", "COACH")

    await workbench.open_assembly(seeded_db, assembly.id)
    assert workbench.editing_assembly_id == assembly.id
    assert staged(workbench) == [("scoring", 0)]

    workbench.stage("chart_line")
    saved = await workbench.save(seeded_db)
    assert [part.part_code for part in saved.parts] == ["scoring", "chart_line"]

    workbench.clear_staging()
    with pytest.raises(NotFoundError):
        await workbench.save(seeded_db)


async def test_two_phase_delete(workbench, seeded_db, fake_clock):
    workbench.stage("scoring")
    assembly = await workbench.commit(seeded_db, "Coach Board", "COACH")

    assert await workbench.request_delete(seeded_db, assembly.id) == DeleteOutcome.ARMED
    assert workbench.pending_delete_id == assembly.id
    assert len(await workbench.assemblies.list_assemblies(seeded_db)) == 1

    fake_clock.advance(1.5)
    assert await workbench.request_delete(seeded_db, assembly.id) == DeleteOutcome.CONFIRMED
    assert workbench.pending_delete_id is None
    assert workbench.assembly_list == []
    with pytest.raises(NotFoundError):
        await workbench.assemblies.get_assembly(seeded_db, assembly.id)


async def test_delete_window_expires(workbench, seeded_db, fake_clock):
    workbench.stage("scoring")
    assembly = await workbench.commit(seeded_db, "Coach Board", "COACH")

    await workbench.request_delete(seeded_db, assembly.id)
    fake_clock.advance(3.2)
    assert workbench.pending_delete_id is None
    assert await workbench.request_delete(seeded_db, assembly.id) == DeleteOutcome.ARMED
    assert (await workbench.assemblies.get_assembly(seeded_db, assembly.id)).id == assembly.id


async def test_acting_elsewhere_disarms(workbench, seeded_db):
    workbench.stage("scoring")
    assembly = await workbench.commit(seeded_db, "Coach Board", "COACH")

    await workbench.request_delete(seeded_db, assembly.id)
    workbench.stage("schedule")
    assert workbench.pending_delete_id is None
    assert await workbench.request_delete(seeded_db, assembly.id) == DeleteOutcome.ARMED

    await workbench.approve(seeded_db, assembly.id)
    assert await workbench.request_delete(seeded_db, assembly.id) == DeleteOutcome.ARMED


async def test_deleting_opened_assembly_clears_editing(workbench, seeded_db):
    workbench.stage("scoring")
    assembly = await workbench.commit(seeded_db, "Coach Board", "COACH")
    await workbench.open_assembly(seeded_db, assembly.id)

    await workbench.request_delete(seeded_db, assembly.id)
    await workbench.request_delete(seeded_db, assembly.id)

    assert workbench.editing_assembly_id is None
    assert workbench.selected_assembly_id is None
    assert len(workbench.staging) == 0
