"""
Módulo de Clientes - POS

Cuentas de fiado: saldo, límite de crédito, autorización y movimientos.

Componentes:
- models.py: Client y ClientMovement
- ledger.py: reglas puras de cargo y pago
- service.py: ejecución con compare-and-swap sobre la versión del cliente
- router.py: Endpoints REST API
"""
