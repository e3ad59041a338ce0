"""
Módulo de Productos - POS

Inventario con código de barras, stock mínimo y decremento atómico de stock.
"""
