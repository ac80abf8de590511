import asyncio

import pytest

from impact_api.errors import ProviderError
from impact_api.impact_model import ImpactLocation, ImpactorParameters
from impact_api.report import ReportSynthesizer


class StaticProvider:
    """AnalysisProvider that answers with fixed text and records prompts."""

    def __init__(self, text="AI narrative: the sky is falling."):
        self.text = text
        self.prompts = []

    async def generate_narrative(self, prompt):
        self.prompts.append(prompt)
        return self.text


class FailingProvider:
    def __init__(self, exc=None):
        self.exc = exc or ProviderError("Gemini returned HTTP 503")
        self.calls = 0

    async def generate_narrative(self, prompt):
        self.calls += 1
        raise self.exc


class CountingSynthesizer(ReportSynthesizer):
    def __init__(self, provider=None, delay_s=0.0):
        super().__init__(provider)
        self.calls = 0
        self.delay_s = delay_s

    async def synthesize(self, impactor, location, metrics):
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        return await super().synthesize(impactor, location, metrics)


@pytest.fixture
def impactor():
    return ImpactorParameters(speed_mps=20000.0, diameter_m=100.0, mass_kg=1e9,
                              angle_deg=45.0, composition="stony")


@pytest.fixture
def location():
    return ImpactLocation(latitude=40.7128, longitude=-74.0060, name="New York City")


@pytest.fixture
def unnamed_location():
    return ImpactLocation(latitude=-33.86, longitude=151.21)


def run(coro):
    return asyncio.run(coro)
