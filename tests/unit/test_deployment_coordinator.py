"""Unit-тесты для размещения и завершения направлений."""

import pytest
from datetime import date
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from core.exceptions import BusinessRuleError, NotFoundError, QuotaExceededError, ValidationError
from domain.entities.deployment import Deployment, DeploymentStatus, ServiceStatus, SourceType
from domain.entities.worker import Gender
from shared.services.deployment_coordinator import DeploymentCoordinator, map_termination_reason
from shared.services.runaway_state_machine import RunawayStateMachine
from tests.utils.test_helpers import ACTOR_ID, START_DATE, make_result, stored_used_quota, recomputed_usage


async def place(session, worker_id, employer_id, letter_id=None, **kwargs):
    """Размещение в отдельной транзакции; возвращает ID направления."""
    async with session.begin():
        deployment = await DeploymentCoordinator(session).create_deployment(
            worker_id, employer_id, START_DATE, actor_id=ACTOR_ID, recruitment_letter_id=letter_id, **kwargs
        )
        return deployment.id


async def terminate(session, deployment_id, reason, end_date=date(2024, 6, 30)):
    async with session.begin():
        deployment = await DeploymentCoordinator(session).terminate_deployment(
            deployment_id, reason, end_date, actor_id=ACTOR_ID
        )
        return deployment.status, deployment.service_status


async def assert_cache_in_sync(session, letter_id):
    assert await stored_used_quota(session, letter_id) == await recomputed_usage(session, letter_id)
    await session.commit()


async def seed_letter(session, factory, workers=3, genders=None, **letter_kwargs):
    """Работодатель, письмо и работники; возвращает только ID."""
    async with session.begin():
        employer = await factory.create_employer()
        letter = await factory.create_letter(employer, **letter_kwargs)
        genders = genders or [Gender.MALE] * workers
        worker_ids = [(await factory.create_worker(gender=g)).id for g in genders]
        return employer.id, letter.id, worker_ids


class TestTerminationMapping:
    """Причина завершения -> статусы направления."""

    @pytest.mark.parametrize(
        "reason, expected",
        [
            ("runaway", (DeploymentStatus.TERMINATED, ServiceStatus.RUNAWAY)),
            ("transferred_out", (DeploymentStatus.TERMINATED, ServiceStatus.TRANSFERRED_OUT)),
            ("contract_terminated", (DeploymentStatus.TERMINATED, ServiceStatus.CONTRACT_TERMINATED)),
            ("commission_ended", (DeploymentStatus.ENDED, ServiceStatus.COMMISSION_ENDED)),
            ("contract_expired", (DeploymentStatus.ENDED, ServiceStatus.COMMISSION_ENDED)),
            ("", (DeploymentStatus.ENDED, ServiceStatus.COMMISSION_ENDED)),
        ],
    )
    def test_mapping_is_deterministic(self, reason, expected):
        assert map_termination_reason(reason) == expected


class TestQuotaScenarios:
    """Сценарии учёта квоты через координатор."""

    @pytest.mark.asyncio
    async def test_non_circular_letter_never_frees_capacity(self, db_session, factory):
        """L-001: квота 2, разовое письмо; после завершения A место C не достаётся."""
        employer_id, letter_id, (a, b, c) = await seed_letter(
            db_session, factory, letter_number="L-001", approved_quota=2, can_circulate=False
        )

        dep_a = await place(db_session, a, employer_id, letter_id)
        assert await stored_used_quota(db_session, letter_id) == 1
        await db_session.commit()

        await place(db_session, b, employer_id, letter_id)
        assert await stored_used_quota(db_session, letter_id) == 2
        await db_session.commit()

        assert await terminate(db_session, dep_a, "contract_terminated") == (
            DeploymentStatus.TERMINATED, ServiceStatus.CONTRACT_TERMINATED
        )

        with pytest.raises(QuotaExceededError) as exc_info:
            await place(db_session, c, employer_id, letter_id)

        error = exc_info.value
        assert (error.letter_number, error.approved_quota, error.usage, error.is_circular) == ("L-001", 2, 2, False)
        assert await stored_used_quota(db_session, letter_id) == 2
        await assert_cache_in_sync(db_session, letter_id)

    @pytest.mark.asyncio
    async def test_non_circular_allows_exactly_n_placements(self, db_session, factory):
        employer_id, letter_id, workers = await seed_letter(db_session, factory, workers=4, approved_quota=3)

        placed = [await place(db_session, w, employer_id, letter_id) for w in workers[:3]]
        for deployment_id in placed:
            await terminate(db_session, deployment_id, "commission_ended")

        with pytest.raises(QuotaExceededError):
            await place(db_session, workers[3], employer_id, letter_id)
        await assert_cache_in_sync(db_session, letter_id)

    @pytest.mark.asyncio
    async def test_circular_letter_frees_slot_on_normal_exit(self, db_session, factory):
        employer_id, letter_id, (a, b, c) = await seed_letter(
            db_session, factory, approved_quota=2, can_circulate=True
        )

        dep_a = await place(db_session, a, employer_id, letter_id)
        await place(db_session, b, employer_id, letter_id)
        with pytest.raises(QuotaExceededError) as exc_info:
            await place(db_session, c, employer_id, letter_id)
        assert exc_info.value.is_circular is True

        await terminate(db_session, dep_a, "transferred_out")
        assert await stored_used_quota(db_session, letter_id) == 1
        await db_session.commit()

        await place(db_session, c, employer_id, letter_id)
        assert await stored_used_quota(db_session, letter_id) == 2
        await assert_cache_in_sync(db_session, letter_id)

    @pytest.mark.asyncio
    async def test_confirmed_runaway_holds_circular_slot(self, db_session, factory):
        """Подтверждённый побег держит место, found его освобождает."""
        employer_id, letter_id, (a, b) = await seed_letter(
            db_session, factory, workers=2, approved_quota=1, can_circulate=True
        )
        dep_a = await place(db_session, a, employer_id, letter_id)

        async with db_session.begin():
            machine = RunawayStateMachine(db_session)
            record = await machine.report(dep_a, date(2024, 3, 1), actor_id=ACTOR_ID)
            await machine.confirm(record.id, actor_id=ACTOR_ID)
            record_id = record.id

        with pytest.raises(QuotaExceededError):
            await place(db_session, b, employer_id, letter_id)
        assert await stored_used_quota(db_session, letter_id) == 1
        await db_session.commit()

        async with db_session.begin():
            await RunawayStateMachine(db_session).mark_found(record_id, actor_id=ACTOR_ID)

        await place(db_session, b, employer_id, letter_id)
        await assert_cache_in_sync(db_session, letter_id)

    @pytest.mark.asyncio
    async def test_gender_sub_quota(self, db_session, factory):
        """L-002: женщина и мужчина размещены, второй мужчина упирается в мужскую подквоту."""
        employer_id, letter_id, (f, m, m2) = await seed_letter(
            db_session, factory,
            genders=[Gender.FEMALE, Gender.MALE, Gender.MALE],
            letter_number="L-002", approved_quota=3, quota_male=1,
        )

        await place(db_session, f, employer_id, letter_id)
        await place(db_session, m, employer_id, letter_id)

        with pytest.raises(QuotaExceededError) as exc_info:
            await place(db_session, m2, employer_id, letter_id)

        assert exc_info.value.gender == "male"
        assert exc_info.value.approved_quota == 1
        assert exc_info.value.usage == 1
        assert await stored_used_quota(db_session, letter_id) == 2

    @pytest.mark.asyncio
    async def test_overall_quota_is_checked_before_gender(self, db_session, factory):
        """Общая квота 1 исчерпана женщиной: мужчина получает общую, а не гендерную ошибку."""
        employer_id, letter_id, (f, m) = await seed_letter(
            db_session, factory, genders=[Gender.FEMALE, Gender.MALE], approved_quota=1, quota_male=1,
        )

        await place(db_session, f, employer_id, letter_id)
        with pytest.raises(QuotaExceededError) as exc_info:
            await place(db_session, m, employer_id, letter_id)

        assert exc_info.value.gender is None
        assert exc_info.value.usage == 1


class TestCreateDeployment:
    """Проверки при размещении."""

    @pytest.mark.asyncio
    async def test_worker_row_locked_before_anything_else(self, mock_db_session):
        """Первым запросом размещения блокируется строка работника."""
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(NotFoundError):
            await DeploymentCoordinator(mock_db_session).create_deployment(
                404, 1, START_DATE, actor_id=ACTOR_ID, recruitment_letter_id=1
            )

        assert mock_db_session.execute.await_count == 1
        statement = mock_db_session.execute.await_args.args[0]
        sql = str(statement.compile(dialect=postgresql.dialect()))
        assert "FROM workers" in sql
        assert sql.rstrip().endswith("FOR UPDATE")

    @pytest.mark.asyncio
    async def test_worker_cannot_hold_two_open_deployments(self, db_session, factory):
        employer_id, letter_id, (a,) = await seed_letter(db_session, factory, workers=1, approved_quota=5)

        await place(db_session, a, employer_id, letter_id)
        with pytest.raises(BusinessRuleError, match="already has an active or pending deployment"):
            await place(db_session, a, employer_id, letter_id)
        with pytest.raises(BusinessRuleError):
            await place(db_session, a, employer_id)

    @pytest.mark.asyncio
    async def test_letter_of_another_employer(self, db_session, factory):
        employer_id, letter_id, (a,) = await seed_letter(db_session, factory, workers=1)
        async with db_session.begin():
            other_id = (await factory.create_employer()).id

        with pytest.raises(BusinessRuleError, match="belongs to another employer"):
            await place(db_session, a, other_id, letter_id)
        assert await stored_used_quota(db_session, letter_id) == 0

    @pytest.mark.asyncio
    async def test_missing_entities(self, db_session, factory):
        employer_id, letter_id, (a,) = await seed_letter(db_session, factory, workers=1)

        with pytest.raises(NotFoundError, match="Worker"):
            await place(db_session, 9999, employer_id, letter_id)
        with pytest.raises(NotFoundError, match="Employer"):
            await place(db_session, a, 9999, letter_id)
        with pytest.raises(NotFoundError, match="RecruitmentLetter"):
            await place(db_session, a, employer_id, 9999)
        with pytest.raises(NotFoundError, match="EntryPermit"):
            await place(db_session, a, employer_id, letter_id, entry_permit_id=9999)

    @pytest.mark.asyncio
    async def test_without_letter(self, db_session, factory):
        employer_id, _, (a,) = await seed_letter(db_session, factory, workers=1)

        deployment_id = await place(db_session, a, employer_id, source_type=SourceType.TRANSFER)

        deployment = await db_session.get(Deployment, deployment_id)
        assert deployment.recruitment_letter_id is None
        assert deployment.source_type == SourceType.TRANSFER
        assert deployment.created_by == ACTOR_ID

    @pytest.mark.asyncio
    async def test_letter_taken_from_entry_permit(self, db_session, factory):
        async with db_session.begin():
            employer = await factory.create_employer()
            letter = await factory.create_letter(employer)
            other_letter = await factory.create_letter(employer)
            entry_permit = await factory.create_entry_permit(letter)
            worker = await factory.create_worker()
            ids = (employer.id, letter.id, other_letter.id, entry_permit.id, worker.id)
        employer_id, letter_id, other_letter_id, entry_permit_id, worker_id = ids

        with pytest.raises(BusinessRuleError, match="different recruitment letter"):
            await place(db_session, worker_id, employer_id, other_letter_id, entry_permit_id=entry_permit_id)

        deployment_id = await place(db_session, worker_id, employer_id, entry_permit_id=entry_permit_id)

        result = await db_session.execute(
            select(Deployment.recruitment_letter_id).where(Deployment.id == deployment_id)
        )
        assert result.scalar_one() == letter_id
        assert await stored_used_quota(db_session, letter_id) == 1

    @pytest.mark.asyncio
    async def test_invalid_initial_status(self, db_session, factory):
        employer_id, _, (a,) = await seed_letter(db_session, factory, workers=1)

        with pytest.raises(ValidationError):
            await place(db_session, a, employer_id, status=DeploymentStatus.ENDED)
        with pytest.raises(ValidationError):
            await place(db_session, a, employer_id, source_type="smuggled")


class TestTerminateAndReactivate:
    """Завершение и реактивация."""

    @pytest.mark.asyncio
    async def test_terminate_only_open(self, db_session, factory):
        employer_id, letter_id, (a,) = await seed_letter(db_session, factory, workers=1)
        deployment_id = await place(db_session, a, employer_id, letter_id)

        assert await terminate(db_session, deployment_id, "other") == (
            DeploymentStatus.ENDED, ServiceStatus.COMMISSION_ENDED
        )
        with pytest.raises(BusinessRuleError, match="Cannot terminate"):
            await terminate(db_session, deployment_id, "runaway")

    @pytest.mark.asyncio
    async def test_terminate_validation(self, db_session, factory):
        employer_id, _, (a,) = await seed_letter(db_session, factory, workers=1)
        deployment_id = await place(db_session, a, employer_id)

        with pytest.raises(ValidationError):
            await terminate(db_session, deployment_id, "  ")
        with pytest.raises(ValidationError):
            await terminate(db_session, deployment_id, "other", end_date=date(2023, 12, 31))
        with pytest.raises(NotFoundError):
            await terminate(db_session, 9999, "other")

    @pytest.mark.asyncio
    async def test_reactivate_after_found(self, db_session, factory):
        employer_id, letter_id, (a,) = await seed_letter(
            db_session, factory, workers=1, approved_quota=1, can_circulate=True
        )
        deployment_id = await place(db_session, a, employer_id, letter_id)

        async with db_session.begin():
            machine = RunawayStateMachine(db_session)
            record = await machine.report(deployment_id, date(2024, 3, 1), actor_id=ACTOR_ID)
            await machine.confirm(record.id, actor_id=ACTOR_ID)
            record_id = record.id

        async def reactivate():
            async with db_session.begin():
                deployment = await DeploymentCoordinator(db_session).reactivate_deployment(
                    deployment_id, actor_id=ACTOR_ID
                )
                return deployment.status, deployment.end_date

        with pytest.raises(BusinessRuleError, match="open runaway record"):
            await reactivate()

        async with db_session.begin():
            await RunawayStateMachine(db_session).mark_found(record_id, actor_id=ACTOR_ID)

        assert await reactivate() == (DeploymentStatus.ACTIVE, None)
        assert await stored_used_quota(db_session, letter_id) == 1
        await db_session.commit()

        with pytest.raises(BusinessRuleError, match="already open"):
            await reactivate()

    @pytest.mark.asyncio
    async def test_reactivate_blocked_when_slot_reused(self, db_session, factory):
        employer_id, letter_id, (a, b) = await seed_letter(
            db_session, factory, workers=2, approved_quota=1, can_circulate=True
        )
        deployment_id = await place(db_session, a, employer_id, letter_id)
        await terminate(db_session, deployment_id, "contract_terminated")
        await place(db_session, b, employer_id, letter_id)

        with pytest.raises(QuotaExceededError):
            async with db_session.begin():
                await DeploymentCoordinator(db_session).reactivate_deployment(deployment_id, actor_id=ACTOR_ID)

    @pytest.mark.asyncio
    async def test_reactivate_blocked_by_other_open_deployment(self, db_session, factory):
        employer_id, _, (a,) = await seed_letter(db_session, factory, workers=1)
        first_id = await place(db_session, a, employer_id)
        await terminate(db_session, first_id, "transferred_out")
        await place(db_session, a, employer_id)

        with pytest.raises(BusinessRuleError, match="already has an active or pending deployment"):
            async with db_session.begin():
                await DeploymentCoordinator(db_session).reactivate_deployment(first_id, actor_id=ACTOR_ID)
