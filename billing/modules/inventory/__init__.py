"""
Módulo de Inventario - reconciliación de stock de facturas

Compara el conjunto de ítems anterior y el nuevo de una factura, calcula el
delta neto por producto, valida existencia, pertenencia a la empresa y stock
suficiente, y aplica cada delta como incremento atómico en la base de datos.
Los servicios nunca llevan stock.
"""
