"""Tests for reading layer trees from docker save tar files."""

import io
import tarfile

import pytest

from image_layer_diff.core.types import AnalysisConfig, TreeIndexKey
from image_layer_diff.exceptions import TarReadError, ValidationError
from image_layer_diff.filetree.models import DiffType, FileKind
from image_layer_diff.tar.reader import (
    TarImageReader,
    analyze_image_tar,
    build_layer_tree,
    normalize_member_name,
)
from tests.helpers import add_bytes, build_layer_blob, create_image_tar, size_map


@pytest.fixture
def image_tar(tmp_path):
    """Three-layer image mirroring the add, modify, delete scenario."""
    layers = [
        build_layer_blob({"a": b"x" * 100, "b": b"y" * 50, "etc/motd": b"hi"}),
        build_layer_blob({"a": b"z" * 200, "c": b"w" * 10}),
        build_layer_blob({".wh.b": None}),
    ]
    commands = ["COPY a b /", "RUN update a", "RUN rm /b"]
    return create_image_tar(tmp_path / "image.tar", layers, commands)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("./etc/passwd", "/etc/passwd"),
        ("etc/", "/etc"),
        ("/usr/bin/sh", "/usr/bin/sh"),
        ("./", None),
        (".", None),
    ],
)
def test_normalize_member_name(name, expected):
    """Test tar member names map onto tree paths."""
    assert normalize_member_name(name) == expected


def test_build_layer_tree_whiteouts():
    """Test whiteout and opaque markers become tree markers."""
    blob = build_layer_blob(
        {
            "etc/.wh.hosts": None,
            "app/.wh..wh..opq": None,
            "app/main.py": b"print()",
        },
        directories=["etc", "app"],
    )
    with tarfile.open(fileobj=io.BytesIO(blob)) as layer_tar:
        tree = build_layer_tree(layer_tar)

    hosts = tree.get_node("/etc/hosts")
    assert hosts.kind is FileKind.WHITEOUT
    assert tree.get_node("/etc/.wh.hosts") is None
    assert tree.get_node("/app").opaque is True
    assert tree.get_node("/app/main.py").info.digest.startswith("sha256:")
    assert tree.get_node("/app").info.mode == 0o755


def test_build_layer_tree_symlinks_and_hash_toggle():
    """Test symlink members and disabling content hashing."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        add_bytes(tar, "bin/busybox", b"elf")
        link = tarfile.TarInfo("bin/sh")
        link.type = tarfile.SYMTYPE
        link.linkname = "busybox"
        tar.addfile(link)
        fifo = tarfile.TarInfo("run/pipe")
        fifo.type = tarfile.FIFOTYPE
        tar.addfile(fifo)
    buffer.seek(0)

    with tarfile.open(fileobj=buffer) as layer_tar:
        tree = build_layer_tree(layer_tar, hash_contents=False)

    sh = tree.get_node("/bin/sh")
    assert sh.kind is FileKind.SYMLINK
    assert sh.info.linkname == "busybox"
    assert tree.get_node("/bin/busybox").info.digest is None
    assert tree.get_node("/run/pipe") is None


@pytest.mark.asyncio
async def test_read_layers(image_tar):
    """Test layer records carry metadata and trees."""
    async with TarImageReader(str(image_tar)) as reader:
        layers = await reader.read_layers()

    assert [layer.index for layer in layers] == [0, 1, 2]
    assert [layer.command for layer in layers] == [
        "COPY a b /",
        "RUN update a",
        "RUN rm /b",
    ]
    assert layers[0].id == "layer0/layer.tar"
    assert layers[0].digest.startswith("sha256:")
    assert layers[0].size == 152
    assert size_map(layers[1].tree) == {"/a": 200, "/c": 10}
    assert layers[2].tree.get_node("/b").kind is FileKind.WHITEOUT


@pytest.mark.asyncio
async def test_analyze_image_tar(image_tar):
    """Test the full analysis of an image tar."""
    analysis = await analyze_image_tar(str(image_tar))

    assert analysis.image == "test/app:latest"
    assert analysis.size_bytes == 152 + 210
    records = {record.path: record for record in analysis.inefficiencies}
    assert records["/a"].cumulative_size == 300
    assert 0.0 <= analysis.efficiency <= 1.0

    comparer = analysis.comparer
    assert comparer.computations == 3
    tree = comparer.get_tree(TreeIndexKey(0, 0, 1, 1))
    assert tree.get_node("/a").diff_type is DiffType.MODIFIED
    assert tree.get_node("/b").diff_type is DiffType.UNMODIFIED
    assert tree.get_node("/c").diff_type is DiffType.ADDED
    assert comparer.computations == 3


@pytest.mark.asyncio
async def test_analyze_image_tar_lazy_cache(image_tar):
    """Test the cache is left empty when pre-warming is disabled."""
    config = AnalysisConfig(build_cache=False, hash_contents=False)

    analysis = await analyze_image_tar(str(image_tar), config)

    assert analysis.comparer.cached_keys() == []
    assert analysis.layers[0].tree.get_node("/a").info.digest is None


@pytest.mark.asyncio
async def test_content_change_with_same_size_is_modified(tmp_path):
    """Test hashing detects rewritten files of unchanged size."""
    layers = [
        build_layer_blob({"conf": b"aaaa"}),
        build_layer_blob({"conf": b"bbbb"}),
    ]
    tar_path = create_image_tar(tmp_path / "image.tar", layers)

    analysis = await analyze_image_tar(str(tar_path))

    tree = analysis.comparer.get_tree(TreeIndexKey(0, 0, 1, 1))
    assert tree.get_node("/conf").diff_type is DiffType.MODIFIED


def test_reader_missing_file(tmp_path):
    """Test a missing tar path is rejected immediately."""
    with pytest.raises(TarReadError):
        TarImageReader(str(tmp_path / "missing.tar"))


@pytest.mark.asyncio
async def test_reader_not_a_tar(tmp_path):
    """Test a file that is not a tar archive."""
    path = tmp_path / "bogus.tar"
    path.write_bytes(b"not a tar file at all")

    with pytest.raises(TarReadError):
        async with TarImageReader(str(path)):
            pass


@pytest.mark.asyncio
async def test_reader_missing_manifest(tmp_path):
    """Test a tar without manifest.json."""
    path = tmp_path / "empty.tar"
    with tarfile.open(path, "w") as tar:
        add_bytes(tar, "other.txt", b"hello")

    async with TarImageReader(str(path)) as reader:
        with pytest.raises(TarReadError):
            await reader.get_manifest()


@pytest.mark.asyncio
async def test_reader_invalid_manifest(tmp_path):
    """Test a manifest.json that is not a non-empty array."""
    path = tmp_path / "invalid.tar"
    with tarfile.open(path, "w") as tar:
        add_bytes(tar, "manifest.json", b"{}")

    async with TarImageReader(str(path)) as reader:
        with pytest.raises(ValidationError):
            await reader.get_manifest()


@pytest.mark.asyncio
async def test_reader_missing_layer(tmp_path):
    """Test a manifest naming a layer that is not in the tar."""
    tar_path = create_image_tar(tmp_path / "image.tar", [build_layer_blob({"a": b"1"})])
    with tarfile.open(tar_path, "a") as tar:
        add_bytes(
            tar,
            "manifest.json",
            b'[{"Config": "config.json", "Layers": ["nope/layer.tar"]}]',
        )

    async with TarImageReader(str(tar_path)) as reader:
        with pytest.raises(TarReadError):
            await reader.read_layers()
