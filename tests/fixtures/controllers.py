"""Controller fixtures wired to the in-memory repository and mock media store."""

import pytest

from ingestion import HeroController, OrderController, ProductController
from uploads import UploadOrchestrator

STATUS_TIMEOUT = 3.5

VALID_PRODUCT_FIELDS = {
    "name": "  Linen Shirt ",
    "description": " Breathable summer shirt ",
    "price": "49.90",
    "sale_price": "39.90",
    "quantity": "12",
    "category": "men",
    "sizes": ["L", "M"],
}

VALID_HERO_FIELDS = {
    "title": "Summer Sale",
    "button_text": "Shop now",
    "description": "Up to 50% off",
}


@pytest.fixture
def product_controller(repository, orchestrator, fake_clock):
    controller = ProductController(repository, orchestrator, STATUS_TIMEOUT, fake_clock)
    controller.mount()
    yield controller
    if controller.mounted:
        controller.unmount()


@pytest.fixture
def hero_controller(repository, mock_media_store, preview_pool, fake_clock):
    controller = HeroController(
        repository, UploadOrchestrator(mock_media_store, preview_pool), STATUS_TIMEOUT, fake_clock
    )
    controller.mount()
    yield controller
    if controller.mounted:
        controller.unmount()


@pytest.fixture
def order_controller(repository, fake_clock):
    controller = OrderController(repository, STATUS_TIMEOUT, fake_clock)
    yield controller
    controller.unmount()
