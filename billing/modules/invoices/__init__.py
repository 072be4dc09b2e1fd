"""
Módulo de Facturación (Invoices)

Ciclo de vida de las facturas de venta:

- Creación con numeración consecutiva sin huecos por empresa
- Integración con inventario (consumo y devolución atómica de stock)
- Cálculo de IVA por línea y totales
- Máquina de estados (draft, pending, partial, overdue, paid, cancelled, void)
- Alertas de stock bajo tras cada cambio de inventario

Roles:
- owner/admin: CRUD completo
- seller: crear, leer, actualizar
- accountant: leer, cambiar estado (pagos)
- viewer: solo lectura

Tablas principales:
- invoices: Facturas de venta
- invoice_line_items: Ítems de factura
"""
