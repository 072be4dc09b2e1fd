"""
Tests para el módulo de Numeración de documentos

Cubren:
- Formato de números (prefijo, relleno)
- Secuencias independientes por empresa y por tipo de documento
- Asignación concurrente sin duplicados ni huecos
- Rollback: un número no confirmado no se consume
- Vista previa y configuración sin alterar el contador
"""

import asyncio
import pytest
from uuid import uuid4

from billing.common.exceptions import InvalidArgumentError
from billing.database.unit_of_work import UnitOfWork
from billing.modules.auth.utils import create_access_token
from billing.modules.numbering.service import SequenceGenerator, format_document_number, default_prefix


async def allocate(session, tenant_id, document_type="invoice"):
    async with UnitOfWork(session) as uow:
        return await SequenceGenerator(session).next_number(uow, tenant_id, document_type)


# ===== TESTS DE FORMATO =====

class TestFormatting:
    """Formato PREFIJO-NNNNN"""

    def test_format_pads_to_width(self):
        assert format_document_number("FAC", 1, 5) == "FAC-00001"
        assert format_document_number("FAC", 42, 5) == "FAC-00042"

    def test_format_does_not_truncate_wider_numbers(self):
        assert format_document_number("FAC", 123456, 5) == "FAC-123456"

    def test_default_prefixes(self):
        assert default_prefix("invoice") == "FAC"
        assert default_prefix("quote") == "COT"
        assert default_prefix("delivery_note") == "ALB"
        assert default_prefix("custom_receipt") == "DOC"


# ===== TESTS DE ASIGNACIÓN =====

class TestNextNumber:
    """Asignación de números consecutivos"""

    async def test_first_number_starts_at_one(self, session, tenant_id):
        assert await allocate(session, tenant_id) == "FAC-00001"

    async def test_numbers_are_consecutive(self, session, tenant_id):
        numbers = [await allocate(session, tenant_id) for _ in range(3)]
        assert numbers == ["FAC-00001", "FAC-00002", "FAC-00003"]

    async def test_sequences_are_isolated_by_tenant(self, session, tenant_id, other_tenant_id):
        await allocate(session, tenant_id)
        await allocate(session, tenant_id)

        assert await allocate(session, other_tenant_id) == "FAC-00001"
        assert await allocate(session, tenant_id) == "FAC-00003"

    async def test_sequences_are_isolated_by_document_type(self, session, tenant_id):
        await allocate(session, tenant_id, "invoice")

        assert await allocate(session, tenant_id, "quote") == "COT-00001"
        assert await allocate(session, tenant_id, "invoice") == "FAC-00002"

    async def test_unknown_type_uses_generic_prefix(self, session, tenant_id):
        assert await allocate(session, tenant_id, "receipt") == "DOC-00001"

    async def test_invalid_document_type_rejected(self, session, tenant_id):
        with pytest.raises(InvalidArgumentError):
            await allocate(session, tenant_id, "Not A Type!")

    async def test_invalid_tenant_rejected(self, session):
        with pytest.raises(InvalidArgumentError):
            await allocate(session, "no-es-un-uuid")

    async def test_rolled_back_number_is_not_consumed(self, session, tenant_id):
        await allocate(session, tenant_id)

        with pytest.raises(RuntimeError):
            async with UnitOfWork(session) as uow:
                number = await SequenceGenerator(session).next_number(uow, tenant_id, "invoice")
                assert number == "FAC-00002"
                raise RuntimeError("falla posterior en la misma transacción")

        assert await allocate(session, tenant_id) == "FAC-00002"

    async def test_concurrent_allocation_has_no_duplicates_or_gaps(self, session_factory, tenant_id):
        async def allocate_in_own_session():
            async with session_factory() as own_session:
                return await allocate(own_session, tenant_id)

        numbers = await asyncio.gather(*[allocate_in_own_session() for _ in range(10)])

        assert sorted(numbers) == [f"FAC-{n:05d}" for n in range(1, 11)]


# ===== TESTS DE CONFIGURACIÓN =====

class TestConfiguration:
    """Vista previa y cambio de prefijo/relleno"""

    async def test_preview_does_not_advance_counter(self, session, tenant_id):
        generator = SequenceGenerator(session)
        await allocate(session, tenant_id)

        first = await generator.preview_next_number(tenant_id, "invoice")
        second = await generator.preview_next_number(tenant_id, "invoice")
        await session.commit()

        assert first.next_number == second.next_number == "FAC-00002"
        assert first.next_sequence == 2
        assert await allocate(session, tenant_id) == "FAC-00002"

    async def test_preview_for_new_sequence(self, session, tenant_id):
        preview = await SequenceGenerator(session).preview_next_number(tenant_id, "proforma")
        assert preview.next_number == "PRO-00001"

    async def test_get_config_defaults_without_sequence(self, session, tenant_id):
        config = await SequenceGenerator(session).get_config(tenant_id, "invoice")
        assert config.prefix == "FAC"
        assert config.padding == 5
        assert config.last_number == 0

    async def test_update_config_keeps_counter(self, session, tenant_id):
        await allocate(session, tenant_id)
        await allocate(session, tenant_id)

        config = await SequenceGenerator(session).update_config(tenant_id, "invoice", prefix="F", padding=3)

        assert config.prefix == "F"
        assert config.padding == 3
        assert config.last_number == 2
        assert await allocate(session, tenant_id) == "F-003"

    async def test_update_config_before_first_number(self, session, tenant_id):
        await SequenceGenerator(session).update_config(tenant_id, "quote", prefix="Q")
        assert await allocate(session, tenant_id, "quote") == "Q-00001"

    async def test_update_config_requires_changes(self, session, tenant_id):
        with pytest.raises(InvalidArgumentError):
            await SequenceGenerator(session).update_config(tenant_id, "invoice")

    async def test_update_config_rejects_blank_prefix(self, session, tenant_id):
        with pytest.raises(InvalidArgumentError):
            await SequenceGenerator(session).update_config(tenant_id, "invoice", prefix="   ")


# ===== TESTS DE API =====

class TestNumberingEndpoints:

    async def test_preview_endpoint(self, client, auth_headers):
        response = await client.get("/document-numbering/invoice/preview", headers=auth_headers())
        assert response.status_code == 200
        assert response.json()["next_number"] == "FAC-00001"

    async def test_update_requires_admin_role(self, client, auth_headers):
        response = await client.put(
            "/document-numbering/invoice",
            json={"prefix": "X"},
            headers=auth_headers("seller")
        )
        assert response.status_code == 403

    async def test_update_endpoint(self, client, auth_headers):
        response = await client.put(
            "/document-numbering/invoice",
            json={"prefix": "INV", "padding": 4},
            headers=auth_headers("admin")
        )
        assert response.status_code == 200
        body = response.json()
        assert body["prefix"] == "INV"
        assert body["padding"] == 4

    async def test_invalid_document_type_is_400(self, client, auth_headers):
        response = await client.get("/document-numbering/Bad-Type", headers=auth_headers())
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_argument"

    async def test_missing_token_is_rejected(self, client):
        response = await client.get("/document-numbering/invoice")
        assert response.status_code in (401, 403)

    async def test_access_token_with_company_header(self, client, tenant_id):
        token = create_access_token(uuid4(), {tenant_id: "admin"})
        headers = {"Authorization": f"Bearer {token}", "X-Company-ID": str(tenant_id)}

        response = await client.get("/document-numbering/invoice/preview", headers=headers)

        assert response.status_code == 200
        assert response.headers["X-Tenant-ID"] == str(tenant_id)

    async def test_access_token_for_foreign_company_is_403(self, client, tenant_id, other_tenant_id):
        token = create_access_token(uuid4(), {tenant_id: "admin"})
        headers = {"Authorization": f"Bearer {token}", "X-Company-ID": str(other_tenant_id)}

        response = await client.get("/document-numbering/invoice/preview", headers=headers)

        assert response.status_code == 403

    async def test_access_token_without_company_is_400(self, client, tenant_id):
        token = create_access_token(uuid4(), {tenant_id: "admin"})

        response = await client.get("/document-numbering/invoice/preview", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 400

    async def test_malformed_company_header_is_400(self, client, auth_headers):
        headers = {**auth_headers(), "X-Company-ID": "not-a-uuid"}

        response = await client.get("/document-numbering/invoice/preview", headers=headers)

        assert response.status_code == 400
