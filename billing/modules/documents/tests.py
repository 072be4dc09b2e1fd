"""
Tests para el módulo de Documentos comerciales

Cubren:
- Numeración propia por tipo (COT, PRO, ALB)
- Los documentos no mueven inventario
- Transiciones de estado
- Conversión a factura en una sola transacción
"""

import pytest
from decimal import Decimal

from billing.common.exceptions import ConflictError, InvalidTransitionError, InsufficientStockError, NotFoundError
from billing.modules.documents.models import DocumentKind, DocumentStatus
from billing.modules.documents.schemas import DocumentCreate, DocumentUpdate, DocumentConvert
from billing.modules.documents.service import DocumentService
from billing.modules.invoices.models import InvoiceStatus
from billing.modules.invoices.schemas import InvoiceCreate, InvoiceLineItemCreate
from billing.modules.invoices.service import InvoiceService


def document_payload(*lines, kind=DocumentKind.QUOTE, **kwargs) -> DocumentCreate:
    return DocumentCreate(
        kind=kind,
        items=[InvoiceLineItemCreate(product_id=product.id, quantity=qty) for product, qty in lines],
        **kwargs
    )


async def approved_quote(service, tenant_id, *lines):
    document = await service.create_document(tenant_id, document_payload(*lines))
    return await service.change_status(tenant_id, document.id, DocumentStatus.APPROVED)


# ===== TESTS DE CREACIÓN =====

class TestCreateDocument:

    async def test_numbering_per_kind(self, session, tenant_id, make_product):
        product = await make_product()
        service = DocumentService(session)

        quote = await service.create_document(tenant_id, document_payload((product, 1)))
        proforma = await service.create_document(tenant_id, document_payload((product, 1), kind=DocumentKind.PROFORMA))
        note = await service.create_document(tenant_id, document_payload((product, 1), kind=DocumentKind.DELIVERY_NOTE))
        second_quote = await service.create_document(tenant_id, document_payload((product, 1)))

        assert [quote.number, proforma.number, note.number, second_quote.number] == [
            "COT-00001", "PRO-00001", "ALB-00001", "COT-00002"
        ]

    async def test_documents_do_not_touch_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=2)

        document = await DocumentService(session).create_document(tenant_id, document_payload((product, 50)))

        assert document.status == DocumentStatus.DRAFT
        assert await stock_of(product.id) == 2

    async def test_totals(self, session, tenant_id, make_product):
        product = await make_product(price=Decimal("12.50"))

        document = await DocumentService(session).create_document(
            tenant_id, document_payload((product, 2), tax_rate=Decimal("0.10"))
        )

        assert document.subtotal == Decimal("25.00")
        assert document.tax == Decimal("2.50")
        assert document.total == Decimal("27.50")

    async def test_unknown_product(self, session, tenant_id, other_tenant_id, make_product):
        foreign = await make_product(tenant=other_tenant_id)

        with pytest.raises(NotFoundError):
            await DocumentService(session).create_document(tenant_id, document_payload((foreign, 1)))


# ===== TESTS DE ESTADOS =====

class TestDocumentStatus:

    async def test_valid_flow(self, session, tenant_id, make_product):
        product = await make_product()
        service = DocumentService(session)
        document = await service.create_document(tenant_id, document_payload((product, 1)))

        sent = await service.change_status(tenant_id, document.id, DocumentStatus.SENT)
        assert sent.status == DocumentStatus.SENT
        approved = await service.change_status(tenant_id, document.id, DocumentStatus.APPROVED)
        assert approved.status == DocumentStatus.APPROVED

    async def test_rejected_is_terminal(self, session, tenant_id, make_product):
        product = await make_product()
        service = DocumentService(session)
        document = await service.create_document(tenant_id, document_payload((product, 1)))
        document_id = document.id
        await service.change_status(tenant_id, document_id, DocumentStatus.REJECTED)

        with pytest.raises(InvalidTransitionError):
            await service.change_status(tenant_id, document_id, DocumentStatus.APPROVED)

    async def test_converted_only_through_conversion(self, session, tenant_id, make_product):
        product = await make_product()
        service = DocumentService(session)
        document = await approved_quote(service, tenant_id, (product, 1))

        with pytest.raises(InvalidTransitionError):
            await service.change_status(tenant_id, document.id, DocumentStatus.CONVERTED)


# ===== TESTS DE CONVERSIÓN =====

class TestConvertToInvoice:

    async def test_conversion_creates_invoice_and_consumes_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10, price=Decimal("4.00"))
        service = DocumentService(session)
        document = await approved_quote(service, tenant_id, (product, 3))

        converted, invoice = await service.convert_to_invoice(
            tenant_id, document.id, DocumentConvert(status=InvoiceStatus.PENDING)
        )

        assert converted.status == DocumentStatus.CONVERTED
        assert converted.converted_invoice_id == invoice.id
        assert invoice.number == "FAC-00001"
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.total == document.total
        assert await stock_of(product.id) == 7

    async def test_converting_twice_is_conflict(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = DocumentService(session)
        document = await approved_quote(service, tenant_id, (product, 3))
        document_id = document.id
        await service.convert_to_invoice(tenant_id, document_id)

        with pytest.raises(ConflictError):
            await service.convert_to_invoice(tenant_id, document_id)

        assert await stock_of(product.id) == 7

    async def test_failed_conversion_leaves_document_and_sequence_untouched(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=1)
        service = DocumentService(session)
        document = await approved_quote(service, tenant_id, (product, 5))
        document_id = document.id

        with pytest.raises(InsufficientStockError):
            await service.convert_to_invoice(tenant_id, document_id)

        stored = await service.get_document(tenant_id, document_id)
        assert stored.status == DocumentStatus.APPROVED
        assert stored.converted_invoice_id is None
        assert await stock_of(product.id) == 1

        other = await make_product(stock=5)
        invoice = await InvoiceService(session).create_invoice(
            tenant_id,
            InvoiceCreate(items=[InvoiceLineItemCreate(product_id=other.id, quantity=1)])
        )
        assert invoice.number == "FAC-00001"

    async def test_draft_cannot_be_converted(self, session, tenant_id, make_product):
        product = await make_product()
        service = DocumentService(session)
        document = await service.create_document(tenant_id, document_payload((product, 1)))

        with pytest.raises(InvalidTransitionError):
            await service.convert_to_invoice(tenant_id, document.id)

    async def test_converted_document_cannot_be_updated(self, session, tenant_id, make_product):
        product = await make_product(stock=10)
        service = DocumentService(session)
        document = await approved_quote(service, tenant_id, (product, 1))
        await service.convert_to_invoice(tenant_id, document.id)

        with pytest.raises(ConflictError):
            await service.update_document(tenant_id, document.id, DocumentUpdate(notes="tarde"))


# ===== TESTS DE API =====

class TestDocumentEndpoints:

    async def test_full_flow(self, client, auth_headers, make_product, stock_of):
        product = await make_product(stock=10)
        headers = auth_headers("seller")

        created = await client.post(
            "/documents",
            json={"kind": "proforma", "items": [{"product_id": str(product.id), "quantity": 2}]},
            headers=headers
        )
        assert created.status_code == 201, created.text
        document_id = created.json()["id"]
        assert created.json()["number"] == "PRO-00001"

        approved = await client.patch(f"/documents/{document_id}/status", json={"status": "approved"}, headers=headers)
        assert approved.status_code == 200

        converted = await client.post(f"/documents/{document_id}/convert", json={"status": "pending"}, headers=headers)
        assert converted.status_code == 200, converted.text
        body = converted.json()
        assert body["document"]["status"] == "converted"
        assert body["invoice"]["number"] == "FAC-00001"
        assert await stock_of(product.id) == 8

        again = await client.post(f"/documents/{document_id}/convert", headers=headers)
        assert again.status_code == 409
