import pytest
from fakes import FakeAPI


@pytest.fixture()
def fake_api() -> FakeAPI:
    return FakeAPI()
