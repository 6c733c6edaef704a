import sys
import pathlib
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

# Ensure the project root is importable so `import app` works
ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Prevent pydantic-settings from attempting to read any .env files during tests.
# Some developer machines have .env files with non-UTF8 contents which cause
# collection-time failures. Override the DotEnvSettingsSource to return nothing.
try:
    import pydantic_settings.sources as _psources
    _psources.DotEnvSettingsSource._read_env_files = lambda self, *args, **kwargs: {}
except Exception:
    # If pydantic-settings internals change, don't fail tests at import time.
    pass

from app.core.errors import TextGenerationError  # noqa: E402
from app.services.storage import ConsumptionStorage  # noqa: E402
from app.services.weather import ForecastPoint, WeatherSnapshot  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory Motor stand-ins
# ---------------------------------------------------------------------------
def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for k, v in (query or {}).items():
        value = doc.get(k)
        if isinstance(v, dict) and any(op.startswith("$") for op in v):
            if value is None:
                return False
            if "$gte" in v and not value >= v["$gte"]:
                return False
            if "$lte" in v and not value <= v["$lte"]:
                return False
        elif value != v:
            return False
    return True


def _sort_key(field: str):
    # Mongo orders null before any value
    def key(doc):
        value = doc.get(field)
        return (value is not None, value if value is not None else 0)
    return key


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._limit: Optional[int] = None

    def sort(self, key_or_list, direction=None):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        for field, order in reversed(keys):
            self._docs.sort(key=_sort_key(field), reverse=order == -1)
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs
        if self._limit:
            docs = docs[: self._limit]
        if length:
            docs = docs[:length]
        return [dict(d) for d in docs]


class _Result:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


class FakeCollection:
    def __init__(self):
        self._docs: List[Dict[str, Any]] = []

    def find(self, query=None):
        return FakeCursor([d for d in self._docs if _matches(d, query)])

    async def find_one(self, query):
        for doc in self._docs:
            if _matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        doc_copy = dict(doc)
        doc_copy.setdefault("_id", ObjectId())
        self._docs.append(doc_copy)
        return _Result(inserted_id=doc_copy["_id"])

    async def update_one(self, query, update):
        # only support $set
        for doc in self._docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return _Result(matched_count=1, modified_count=1)
        return _Result(matched_count=0, modified_count=0)

    async def delete_many(self, query):
        keep = [d for d in self._docs if not _matches(d, query)]
        deleted = len(self._docs) - len(keep)
        self._docs = keep
        return _Result(deleted_count=deleted)

    async def create_index(self, keys, **kwargs):
        return "_".join(f"{k}_{v}" for k, v in keys)


class FakeDB:
    def __init__(self):
        self.users = FakeCollection()
        self.consumption_readings = FakeCollection()
        self.predictions = FakeCollection()
        self.recommendations = FakeCollection()
        self.co2_insights = FakeCollection()

    async def command(self, name):
        return {"ok": 1.0}


# ---------------------------------------------------------------------------
# Capability stand-ins
# ---------------------------------------------------------------------------
class FakeTextGenerator:
    """Returns queued responses in order; an Exception instance in the queue is raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, *, system, temperature=0.7, max_output_tokens=None, json_response=True):
        self.calls.append(
            {
                "prompt": prompt,
                "system": system,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
                "json_response": json_response,
            }
        )
        if not self.responses:
            raise TextGenerationError("no response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeWeather:
    def __init__(self, snapshot: Optional[WeatherSnapshot] = None, forecast=None, error: Optional[Exception] = None):
        self.snapshot = snapshot
        self._forecast = forecast or []
        self.error = error
        self.locations: List[str] = []

    async def current(self, region):
        if self.error:
            raise self.error
        return self.snapshot

    async def current_by_location(self, location):
        if self.error:
            raise self.error
        self.locations.append(location)
        return self.snapshot

    async def forecast(self, region, days=5):
        if self.error:
            raise self.error
        return self._forecast


def make_snapshot(temperature=20.0, description="clear sky", location="Almaty"):
    return WeatherSnapshot(
        temperature=temperature,
        description=description,
        humidity=40,
        wind_speed=2.0,
        location=location,
        impact="Moderate weather conditions. Good opportunity to reduce heating/cooling costs.",
    )


def make_forecast(*temperatures):
    from datetime import datetime, timedelta

    start = datetime(2024, 7, 1)
    return [ForecastPoint(date=start + timedelta(hours=3 * i), temperature=t) for i, t in enumerate(temperatures)]


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def storage(fake_db):
    return ConsumptionStorage(fake_db)
