"""Unit-тесты для жизненного цикла разрешений на трудоустройство."""

import pytest
import pytest_asyncio
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy import select

from core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from domain.entities.deployment import SourceType
from domain.entities.employment_permit import EmploymentPermit, PermitStatus, PermitType
from shared.services.permit_state_machine import PermitStateMachine, NO_PERMIT
from tests.utils.test_helpers import ACTOR_ID


ISSUE = date(2024, 2, 1)
EXPIRY = date(2025, 2, 1)


async def _permits(session, deployment_id):
    result = await session.execute(
        select(EmploymentPermit.id, EmploymentPermit.type, EmploymentPermit.status, EmploymentPermit.replaced_by_id)
        .where(EmploymentPermit.deployment_id == deployment_id)
        .order_by(EmploymentPermit.id)
    )
    return result.all()


class TestIssuePermit:
    """Выдача разрешений."""

    @pytest_asyncio.fixture
    async def deployment_ids(self, db_session, factory):
        """Направление по письму с разрешением на въезд и направление-перевод."""
        async with db_session.begin():
            employer = await factory.create_employer()
            letter = await factory.create_letter(employer)
            entry_permit = await factory.create_entry_permit(letter)
            direct = await factory.create_deployment(await factory.create_worker(), employer, letter, entry_permit)
            transfer = await factory.create_deployment(
                await factory.create_worker(), employer, source_type=SourceType.TRANSFER
            )
            bare = await factory.create_deployment(await factory.create_worker(), employer, letter)
            return {"direct": direct.id, "transfer": transfer.id, "bare": bare.id}

    async def _issue(self, session, deployment_id, permit_type, number, issue=ISSUE, expiry=EXPIRY, **kwargs):
        async with session.begin():
            permit = await PermitStateMachine(session).issue_permit(
                deployment_id, permit_type, number, issue, expiry, actor_id=ACTOR_ID, **kwargs
            )
            return permit.id

    @pytest.mark.asyncio
    async def test_initial_with_entry_permit(self, db_session, deployment_ids):
        permit_id = await self._issue(
            db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1",
            fee_amount=Decimal("100.00"), receipt_number="R-1"
        )

        rows = await _permits(db_session, deployment_ids["direct"])
        assert [(r.id, r.type, r.status) for r in rows] == [(permit_id, PermitType.INITIAL, PermitStatus.ACTIVE)]

    @pytest.mark.asyncio
    async def test_initial_for_transfer_needs_no_entry_permit(self, db_session, deployment_ids):
        await self._issue(db_session, deployment_ids["transfer"], "INITIAL", "WP-T")

        rows = await _permits(db_session, deployment_ids["transfer"])
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_initial_requires_entry_permit(self, db_session, deployment_ids):
        with pytest.raises(BusinessRuleError, match="requires an entry permit"):
            await self._issue(db_session, deployment_ids["bare"], PermitType.INITIAL, "WP-X")

        assert await _permits(db_session, deployment_ids["bare"]) == []

    @pytest.mark.asyncio
    async def test_duplicate_initial_rejected(self, db_session, deployment_ids):
        await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1")

        with pytest.raises(BusinessRuleError, match="already has an active"):
            await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-2")

    @pytest.mark.asyncio
    async def test_extension_without_active_permit(self, db_session, deployment_ids):
        with pytest.raises(BusinessRuleError, match="Cannot extend without a prior active permit"):
            await self._issue(db_session, deployment_ids["direct"], PermitType.EXTENSION, "WP-E")

    @pytest.mark.asyncio
    async def test_extension_expires_previous(self, db_session, deployment_ids):
        """После INITIAL первое продление проходит, а INITIAL становится EXPIRED."""
        initial_id = await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1")
        extension_id = await self._issue(
            db_session, deployment_ids["direct"], PermitType.EXTENSION, "WP-2",
            issue=EXPIRY, expiry=EXPIRY + timedelta(days=730)
        )

        rows = {r.id: r for r in await _permits(db_session, deployment_ids["direct"])}
        assert rows[initial_id].status == PermitStatus.EXPIRED
        assert rows[extension_id].status == PermitStatus.ACTIVE
        assert rows[extension_id].type == PermitType.EXTENSION

    @pytest.mark.asyncio
    async def test_chain_of_extensions_keeps_single_active(self, db_session, deployment_ids):
        await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1")
        await self._issue(db_session, deployment_ids["direct"], PermitType.EXTENSION, "WP-2")
        await self._issue(db_session, deployment_ids["direct"], PermitType.EXTENSION, "WP-3")

        statuses = [r.status for r in await _permits(db_session, deployment_ids["direct"])]
        assert statuses.count(PermitStatus.ACTIVE) == 1
        assert statuses[-1] == PermitStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_reissue_without_predecessor(self, db_session, deployment_ids):
        await self._issue(db_session, deployment_ids["bare"], PermitType.REISSUE, "WP-R")

        rows = await _permits(db_session, deployment_ids["bare"])
        assert [(r.type, r.status) for r in rows] == [(PermitType.REISSUE, PermitStatus.ACTIVE)]

    @pytest.mark.asyncio
    async def test_reissue_replaces_active_permit(self, db_session, deployment_ids):
        initial_id = await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1")
        reissue_id = await self._issue(db_session, deployment_ids["direct"], PermitType.REISSUE, "WP-1R")

        rows = {r.id: r for r in await _permits(db_session, deployment_ids["direct"])}
        assert rows[initial_id].status == PermitStatus.EXPIRED
        assert rows[initial_id].replaced_by_id == reissue_id
        assert rows[reissue_id].status == PermitStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_invalid_input(self, db_session, deployment_ids):
        with pytest.raises(ValidationError):
            await self._issue(db_session, deployment_ids["direct"], "RENEWAL", "WP-1")
        with pytest.raises(ValidationError):
            await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "  ")
        with pytest.raises(ValidationError):
            await self._issue(db_session, deployment_ids["direct"], PermitType.INITIAL, "WP-1", issue=EXPIRY, expiry=ISSUE)

    @pytest.mark.asyncio
    async def test_unknown_deployment(self, db_session, deployment_ids):
        with pytest.raises(NotFoundError):
            await self._issue(db_session, 9999, PermitType.INITIAL, "WP-1")


class TestCheckExpiry:
    """Проверка срока действия."""

    @pytest_asyncio.fixture
    async def deployment_id(self, db_session, factory):
        async with db_session.begin():
            employer = await factory.create_employer()
            deployment = await factory.create_deployment(await factory.create_worker(), employer)
            return deployment.id

    @pytest.mark.asyncio
    async def test_no_permit(self, db_session, deployment_id):
        result = await PermitStateMachine(db_session).check_expiry(deployment_id)
        assert result == {"status": NO_PERMIT}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "days_left, can_extend, is_urgent, is_expired",
        [
            (200, False, False, False),
            (120, True, False, False),
            (30, True, True, False),
            (1, True, True, False),
            (0, False, True, True),
            (-5, False, True, True),
        ],
    )
    async def test_windows(self, db_session, factory, deployment_id, days_left, can_extend, is_urgent, is_expired):
        today = date(2024, 6, 1)
        expiry = today + timedelta(days=days_left)
        async with db_session.begin():
            db_session.add(EmploymentPermit(
                deployment_id=deployment_id,
                permit_number="WP-1",
                type=PermitType.INITIAL,
                status=PermitStatus.ACTIVE,
                issue_date=expiry - timedelta(days=365),
                expiry_date=expiry,
                created_by=ACTOR_ID,
            ))

        result = await PermitStateMachine(db_session).check_expiry(deployment_id, today=today)

        assert result["status"] == "ACTIVE"
        assert result["permit_number"] == "WP-1"
        assert result["days_until_expiry"] == days_left
        assert result["can_extend"] is can_extend
        assert result["is_urgent"] is is_urgent
        assert result["is_expired"] is is_expired

    @pytest.mark.asyncio
    async def test_history_newest_first(self, db_session, factory, deployment_id):
        async with db_session.begin():
            db_session.add_all([
                EmploymentPermit(
                    deployment_id=deployment_id, permit_number="OLD", type=PermitType.INITIAL,
                    status=PermitStatus.EXPIRED, issue_date=date(2022, 1, 1), expiry_date=date(2023, 1, 1),
                    created_by=ACTOR_ID,
                ),
                EmploymentPermit(
                    deployment_id=deployment_id, permit_number="NEW", type=PermitType.EXTENSION,
                    status=PermitStatus.ACTIVE, issue_date=date(2023, 1, 1), expiry_date=date(2026, 1, 1),
                    created_by=ACTOR_ID,
                ),
            ])

        history = await PermitStateMachine(db_session).get_permit_history(deployment_id)

        assert [p.permit_number for p in history] == ["NEW", "OLD"]
