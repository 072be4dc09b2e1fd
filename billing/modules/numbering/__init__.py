"""
Módulo de Numeración de Documentos

Secuencias consecutivas, sin huecos, por empresa y tipo de documento
(factura, nota de crédito, cotización, ...). El contador se incrementa con
una sola sentencia atómica (upsert con incremento) dentro de la unidad de
trabajo del llamador; la vista previa nunca lo modifica.

Tablas principales:
- document_sequences: último número, prefijo y relleno por (empresa, tipo)
"""
