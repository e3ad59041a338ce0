"""
Reloj inyectable.

Los servicios nunca llaman a datetime.now() directamente: reciben un Clock
para que las pruebas puedan fijar el tiempo.
"""
from datetime import datetime, timezone


class SystemClock:
    """Reloj del sistema en UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Reloj detenido en un instante; avanza solo con advance()."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta) -> datetime:
        self.instant = self.instant + delta
        return self.instant


system_clock = SystemClock()


def get_clock():
    """Dependencia FastAPI para el reloj (sobrescribible en pruebas)."""
    return system_clock
