"""
Módulo de Notificaciones

Alertas de inventario bajo generadas después de cada reconciliación de stock
y por un barrido periódico (Celery beat). Una notificación sin leer por
producto: mientras exista una activa no se crean duplicados.
"""
