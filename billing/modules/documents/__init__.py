"""
Módulo de Documentos comerciales

Cotizaciones, proformas y notas de entrega. Se numeran con su propia
secuencia por empresa y calculan totales igual que las facturas, pero no
mueven inventario: el stock solo se consume al convertirlos en factura.
"""
