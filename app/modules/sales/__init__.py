"""
Módulo de Ventas - POS

Registra ventas y devoluciones como transacciones completas: ticket, ítems
con precio congelado, descuento o reposición de stock y cargo fiado.

Componentes:
- models.py: Sale, SaleItem y TicketSequence
- schemas.py: registros tipados y esquemas de entrada/salida
- service.py: orquestador de venta, devolución y cambio de método de pago
- router.py: Endpoints REST API
"""
