"""Optional demo data for a fresh installation.

Nothing in the core depends on this module. :func:`seed_demo_data` fills only
collections that are still empty, so running it twice changes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from . import log
from .constants import UserRole
from .entities import InventoryItem, Service, Supplier, User
from .repository import Repository


DEMO_SERVICES = (
    Service(name="Lavado Básico", description="Lavado exterior básico", price="150.00", estimated_minutes=30),
    Service(
        name="Lavado Premium",
        description="Lavado completo + encerado + aspirado",
        price="280.00",
        estimated_minutes=45,
    ),
    Service(
        name="Limpieza Interior", description="Aspirado + limpieza tapicería", price="120.00", estimated_minutes=20
    ),
    Service(name="Encerado", description="Aplicación de cera protectora", price="200.00", estimated_minutes=25),
    Service(
        name="Lavado Completo",
        description="Servicio completo interior y exterior",
        price="350.00",
        estimated_minutes=65,
    ),
)

DEMO_INVENTORY = (
    InventoryItem(
        name="Champú Premium",
        description="Champú para lavado de vehículos",
        current_stock="24.00",
        min_stock="10.00",
        unit="L",
        cost_per_unit="210.00",
    ),
    InventoryItem(
        name="Cera Líquida",
        description="Cera protectora líquida",
        current_stock="8.00",
        min_stock="12.00",
        unit="L",
        cost_per_unit="370.00",
    ),
    InventoryItem(
        name="Desengrasante",
        description="Producto para eliminar grasa",
        current_stock="2.00",
        min_stock="8.00",
        unit="L",
        cost_per_unit="295.00",
    ),
    InventoryItem(
        name="Toallas Microfibra",
        description="Toallas de microfibra para secado",
        current_stock="45.00",
        min_stock="20.00",
        unit="und",
        cost_per_unit="85.00",
    ),
    InventoryItem(
        name="Aspiradora Industrial",
        description="Equipo de aspirado industrial",
        current_stock="3.00",
        min_stock="2.00",
        unit="und",
        cost_per_unit="11000.00",
    ),
)

DEMO_SUPPLIERS = (
    Supplier(
        name="Distribuidora Central",
        contact="Carlos Mejía",
        phone="9988-7766",
        email="ventas@distribuidoracentral.hn",
        address="San Pedro Sula, Cortés",
    ),
    Supplier(
        name="Productos de Limpieza HN",
        contact="María González",
        phone="9755-4433",
        email="info@limpiezahn.com",
        address="Tegucigalpa, Francisco Morazán",
    ),
    Supplier(
        name="Equipos Industriales del Norte",
        contact="Roberto Fernández",
        phone="9611-2299",
        email="equipos@industrialnorte.hn",
        address="Choloma, Cortés",
    ),
)


@dataclass(frozen=True)
class SeedReport:
    services: int = 0
    inventory_items: int = 0
    suppliers: int = 0
    users: int = 0


def seed_demo_data(
    repository: Repository,
    *,
    admin_username: str = "admin",
    admin_password: Optional[str] = None,
) -> SeedReport:
    """Load the demo catalog, inventory and suppliers into empty collections.

    An admin account is created only when ``admin_password`` is given and no
    user exists yet; no default password is ever shipped.

    Returns:
        SeedReport: How many records of each kind were added.
    """

    with repository.transaction():
        services = inventory = suppliers = users = 0
        if not repository.list_services():
            for service in DEMO_SERVICES:
                repository.add_service(service)
            services = len(DEMO_SERVICES)
        if not repository.list_inventory_items():
            for item in DEMO_INVENTORY:
                repository.add_inventory_item(item)
            inventory = len(DEMO_INVENTORY)
        if not repository.list_suppliers():
            for supplier in DEMO_SUPPLIERS:
                repository.add_supplier(supplier)
            suppliers = len(DEMO_SUPPLIERS)
        if admin_password and not repository.list_users():
            repository.add_user(User.with_password(admin_username, admin_password, UserRole.ADMIN))
            users = 1

    report = SeedReport(services=services, inventory_items=inventory, suppliers=suppliers, users=users)
    log.info("Seeded demo data: %s", report)
    return report


__all__ = ["DEMO_SERVICES", "DEMO_INVENTORY", "DEMO_SUPPLIERS", "SeedReport", "seed_demo_data"]
