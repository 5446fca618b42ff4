"""Pytest configuration and fixtures."""

import pytest

from filevault.media.inspector import MediaInspector
from filevault.media.transcoder import RenditionTranscoder
from filevault.services.pipeline import PipelineConfig, UploadPipeline
from filevault.storage.s3_store import S3ObjectStore
from fakes import BUCKET, FakeFFmpeg, FakeFFprobe, FakeFileRepository, FakeS3Client


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def store(s3_client):
    return S3ObjectStore(s3_client, BUCKET, public_base_url="https://cdn.test", concurrency=3)


@pytest.fixture
def ffprobe():
    return FakeFFprobe()


@pytest.fixture
def ffmpeg():
    return FakeFFmpeg()


@pytest.fixture
def temp_root(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def pipeline(store, ffprobe, ffmpeg, temp_root):
    return UploadPipeline(
        inspector=MediaInspector(runner=ffprobe),
        transcoder=RenditionTranscoder(runner=ffmpeg),
        store=store,
        config=PipelineConfig(temp_dir=str(temp_root)),
    )


@pytest.fixture
def repository():
    return FakeFileRepository()


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, content: bytes = b"hello world") -> str:
        path = tmp_path / "incoming" / name
        path.parent.mkdir(exist_ok=True)
        path.write_bytes(content)
        return str(path)
    return _make
