"""
Reports Module - POS

Reportes de ventas y panel de control del punto de venta.

Este módulo NO crea nuevas tablas: consulta ventas, turnos, productos y
clientes de los otros módulos y reutiliza las primitivas del libro de caja
para que los totales coincidan con los de cada turno.

Funcionalidades principales:
- Reporte de ventas por rango (hoy, semana, mes o personalizado)
- Desglose por método de pago, productos más vendidos y ventas por vendedor
- Panel de control: ventas del día, turno actual, stock bajo y deuda de fiado
- Exportación CSV del reporte de ventas

Architecture Pattern: Service Layer
- routers/ -> Endpoints FastAPI
- services/ -> Consultas y agregación
- schemas/ -> Modelos Pydantic de respuesta
"""
