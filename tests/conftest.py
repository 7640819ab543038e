import pytest

from support import ChunkStream


@pytest.fixture
def body() -> ChunkStream:
    return ChunkStream()
