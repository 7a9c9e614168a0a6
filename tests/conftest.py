"""Pytest configuration and shared fixtures."""
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

import changetracking.config as config_module
from changetracking import as_trackable


@dataclass
class Address:
    """Nested complex field."""
    street: str = ""
    city: str = ""


@dataclass
class OrderLine:
    product: str = ""
    quantity: int = 1


@dataclass
class Order:
    """Collection item that itself holds a collection."""
    number: int = 0
    lines: List[OrderLine] = field(default_factory=list)


@dataclass
class Customer:
    """Root object with a complex field and a collection field."""
    name: str = ""
    age: int = 0
    address: Optional[Address] = None
    orders: List[Order] = field(default_factory=list)


class EventRecorder:
    """Callable that records the arguments of every call."""

    def __init__(self):
        self.events = []

    def __call__(self, *args):
        self.events.append(args)

    def names(self):
        """Property names from recorded (sender, name) property_changed events."""
        return [args[1] for args in self.events]


@pytest.fixture(autouse=True)
def reset_default_options():
    """Restore the process-wide tracking options after each test."""
    original_options = config_module._default_options
    yield
    config_module._default_options = original_options


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def customer():
    """Tracked customer with an address and two orders, all UNCHANGED."""
    return as_trackable(Customer(
        name="A",
        age=30,
        address=Address(street="Main St", city="Springfield"),
        orders=[
            Order(number=1, lines=[OrderLine(product="bolt", quantity=2)]),
            Order(number=2),
        ],
    ))
