"""
Módulo de Autenticación - POS

Contraseñas estáticas por rol (admin, manager) canjeadas por un JWT.
Sin token la sesión opera como mostrador (cashier).
"""
