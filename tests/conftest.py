import pytest

from fileshare.config import ServerConfig
from fileshare.file_server_ui import create_app

NESTED_BYTES = bytes(range(256)) * 10


@pytest.fixture
def shared_root(tmp_path):
    root = tmp_path / "share"
    root.mkdir()
    (root / "hello.txt").write_text("hello world")
    (root / "<script>.txt").write_text("alert")
    (root / "empty").mkdir()
    sub = root / "sub dir"
    sub.mkdir()
    (sub / "nested.bin").write_bytes(NESTED_BYTES)
    (tmp_path / "outside.txt").write_text("TOP SECRET")
    return root.resolve()


@pytest.fixture
def server_config(shared_root):
    return ServerConfig(root_dir=str(shared_root), chunk_size=100)


@pytest.fixture
async def client(aiohttp_client, server_config):
    return await aiohttp_client(create_app(server_config))
