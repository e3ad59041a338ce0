"""
Módulo de Turnos - POS

Gestiona la apertura y cierre de turnos de caja con arqueo.

Características principales:
- Un solo turno abierto a la vez
- Resumen de ventas por método de pago (ledger.py, funciones puras)
- Arqueo al cierre: efectivo esperado vs. contado
- Snapshot inmutable de ventas al cerrar
- Gastos del turno (sueldo, flete, proveedor, otro)

Componentes:
- models.py: Shift y ShiftExpense
- ledger.py: agregación y conciliación sin acceso a base de datos
- service.py: apertura, cierre atómico y gastos
- router.py: Endpoints REST API
"""
