from fastapi import Request

from room_inventory.admission.controller import AdmissionController
from room_inventory.bookings.lifecycle import BookingLifecycle
from room_inventory.inventory.service import InventoryService


def get_admission(request: Request) -> AdmissionController:
    return request.app.state.admission


def get_lifecycle(request: Request) -> BookingLifecycle:
    return request.app.state.lifecycle


def get_inventory_service(request: Request) -> InventoryService:
    return request.app.state.inventory
