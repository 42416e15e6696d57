import pytest

from transport_backend.application.checklist import DEFAULT_CHECKLIST
from transport_backend.application.use_cases.fleet_resources import FleetResourceService
from transport_backend.application.use_cases.route_lifecycle import RouteLifecycleManager
from transport_backend.domain.models import ItemResponse
from transport_backend.infrastructure.memory_store import InMemoryResourceStore
from transport_backend.infrastructure.store import DRIVERS, ROUTES, VEHICLES
from transport_backend.infrastructure.whatsapp import WhatsAppResult

ORG = "ORG-1"
USER = "USR-1"


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def notify(self, kind, user_id, organization_id, payload):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((kind, user_id, organization_id, dict(payload)))

    @property
    def kinds(self):
        return [kind for kind, *_ in self.sent]


class FakeWhatsApp:
    def __init__(self, success: bool = True, raises: bool = False):
        self.success = success
        self.raises = raises
        self.messages = []

    async def send_whatsapp(self, phone, template_id, params):
        self.messages.append((phone, template_id, list(params)))
        if self.raises:
            raise ConnectionError("whatsapp unreachable")
        if self.success:
            return WhatsAppResult(success=True, message_id="wamid.TEST")
        return WhatsAppResult(success=False, error="template rejected")


def _stops(n):
    return [
        {"stop_id": f"S{i}", "sequence": i, "address": f"{i} Marina Road, Lagos", "status": "pending"}
        for i in range(1, n + 1)
    ]


def seed_fleet(store):
    store.seed(
        DRIVERS,
        [
            {"id": "D1", "organization_id": ORG, "name": "Musa Bello", "phone": "08031234567", "status": "Idle"},
            {"id": "D2", "organization_id": ORG, "name": "Ada Obi", "phone": "", "status": "Available"},
            {"id": "D3", "organization_id": ORG, "name": "Tunde Okafor", "phone": "08030000000", "status": "Offline"},
            {"id": "DX", "organization_id": "ORG-2", "name": "Other Org Driver", "status": "Idle"},
        ],
    )
    store.seed(
        VEHICLES,
        [
            {"id": "V1", "organization_id": ORG, "plate_number": "LAG-123-XY", "status": "Parked", "odometer": 1000.0},
            {"id": "V2", "organization_id": ORG, "plate_number": "ABJ-456-ZZ", "status": "Active", "odometer": 0.0},
            {"id": "V3", "organization_id": ORG, "plate_number": "KAN-789-AA", "status": "In-Shop"},
        ],
    )
    store.seed(
        ROUTES,
        [
            {
                "id": "R1",
                "organization_id": ORG,
                "origin": "Lagos",
                "destination": "Ibadan",
                "status": "Pending",
                "progress": 0,
                "rate": 150000.0,
                "distance_km": 128.0,
                "stops": _stops(3),
                "expenses": [],
            },
            {
                "id": "R2",
                "organization_id": ORG,
                "origin": "Abuja",
                "destination": "Kaduna",
                "status": "Pending",
                "progress": 0,
                "rate": 90000.0,
                "distance_km": 190.0,
                "stops": [],
                "expenses": [],
            },
        ],
    )
    return store


@pytest.fixture
def make_store():
    """Seeded store factory; pass a subclass to inject failures."""

    def _make(cls=InMemoryResourceStore):
        return seed_fleet(cls())

    return _make


@pytest.fixture
def store(make_store):
    return make_store()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def make_manager(notifier, whatsapp):
    def _make(store, notifier=notifier, whatsapp=whatsapp, organization_id=ORG):
        return RouteLifecycleManager(store, notifier, whatsapp, organization_id, USER)

    return _make


@pytest.fixture
def manager(make_manager, store):
    return make_manager(store)


@pytest.fixture
def fleet(store, notifier):
    return FleetResourceService(store, notifier, ORG, USER)


@pytest.fixture
def good_responses():
    return {item.item_id: ItemResponse(status="good") for item in DEFAULT_CHECKLIST}
