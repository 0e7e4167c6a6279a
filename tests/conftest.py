from typing import List

import pytest

from multichat.models import Host


@pytest.fixture
def hosts() -> List[Host]:
    return [
        Host(name="H1", url="http://h1:11434", models=["m1", "x1"]),
        Host(name="H2", url="http://h2:11434/", models=["m2"]),
        Host(name="H3", url="http://h3:11434", models=["m3"]),
    ]
