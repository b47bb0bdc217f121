"""Tests for initial discovery with the Walker."""

import asyncio
import os

import pytest

from autocompile_core import walker as walker_module
from autocompile_core.source_watchers import DirectoryWatcher, FileWatcher
from autocompile_core.walker import SourceNotFoundError


@pytest.fixture
def tree(tmp_path):
    """src/ with sources, non-sources, a nested directory and an empty one."""
    src = tmp_path / "src"
    (src / "lib" / "deep").mkdir(parents=True)
    (src / "empty").mkdir()
    (src / "a.coffee").write_text("a = 1")
    (src / "notes.txt").write_text("not a source")
    (src / "lib" / "b.coffee").write_text("b = 2")
    (src / "lib" / "style.less").write_text("@c: red;")
    (src / "lib" / "deep" / "README.md").write_text("# hi")
    return src


async def discover(ctx, path):
    path = str(path)
    ctx.registry.register_path(path)
    await ctx.walker.walk(path, top_level=True, base=path)


@pytest.mark.asyncio
async def test_registry_holds_exactly_the_sources(make_context, tree):
    ctx = make_context()
    await discover(ctx, tree)

    assert set(ctx.registry.sources) == {
        str(tree / "a.coffee"),
        str(tree / "lib" / "b.coffee"),
        str(tree / "lib" / "style.less"),
    }
    assert len(ctx.registry.sources) == len(ctx.registry.source_code)
    assert not any(os.path.isdir(p) for p in ctx.registry.sources)


@pytest.mark.asyncio
async def test_non_sources_are_remembered(make_context, tree):
    ctx = make_context()
    await discover(ctx, tree)

    assert ctx.registry.non_sources == {str(tree / "notes.txt"), str(tree / "lib" / "deep" / "README.md")}


@pytest.mark.asyncio
async def test_registry_order_is_depth_first(make_context, tree):
    ctx = make_context()
    await discover(ctx, tree)

    assert ctx.registry.sources == [
        str(tree / "a.coffee"),
        str(tree / "lib" / "b.coffee"),
        str(tree / "lib" / "style.less"),
    ]


@pytest.mark.asyncio
async def test_watchers_attached(make_context, backend, tree):
    ctx = make_context()
    await discover(ctx, tree)

    assert isinstance(ctx.watchers[str(tree)], DirectoryWatcher)
    assert isinstance(ctx.watchers[str(tree / "empty")], DirectoryWatcher)
    assert isinstance(ctx.watchers[str(tree / "lib" / "b.coffee")], FileWatcher)
    assert str(tree / "notes.txt") not in ctx.watchers
    assert str(tree / "lib" / "deep") in backend.dirs


@pytest.mark.asyncio
async def test_sources_compiled_on_discovery(make_context, coffee, notifier, tree):
    ctx = make_context()
    await discover(ctx, tree)

    assert sorted(call[1] for call in coffee.calls) == [str(tree / "a.coffee"), str(tree / "lib" / "b.coffee")]
    assert (tree / "a.js").read_text() == "A = 1"
    assert (tree / "lib" / "style.css").read_text() == "@C: RED;"
    assert len(notifier.compiled_paths) == 3


@pytest.mark.asyncio
async def test_output_dir_mirrors_tree(make_context, tmp_path, tree):
    ctx = make_context(output_dir=str(tmp_path / "build"))
    await discover(ctx, tree)

    assert (tmp_path / "build" / "a.js").exists()
    assert (tmp_path / "build" / "lib" / "b.js").exists()


@pytest.mark.asyncio
async def test_rediscovery_is_idempotent(make_context, tree):
    ctx = make_context()
    await discover(ctx, tree)
    first = set(ctx.registry.sources)

    await discover(ctx, tree)

    assert set(ctx.registry.sources) == first
    assert len(ctx.registry.sources) == len(first)


@pytest.mark.asyncio
async def test_top_level_file_with_unknown_extension(make_context, coffee, tmp_path):
    """Files named explicitly are sources whatever their extension."""
    script = tmp_path / "Cakefile"
    script.write_text("task 'build'")
    ctx = make_context()
    await discover(ctx, script)

    assert ctx.registry.sources == [str(script)]
    assert coffee.calls[0][1] == str(script)


@pytest.mark.asyncio
async def test_missing_top_level_retries_default_extension(make_context, tmp_path):
    (tmp_path / "app.coffee").write_text("x = 1")
    ctx = make_context()
    await discover(ctx, tmp_path / "app")

    assert ctx.registry.sources == [str(tmp_path / "app.coffee")]
    assert (tmp_path / "app.js").exists()


@pytest.mark.asyncio
async def test_missing_top_level_raises(make_context, tmp_path):
    ctx = make_context()
    with pytest.raises(SourceNotFoundError) as exc_info:
        await discover(ctx, tmp_path / "nope")
    assert exc_info.value.path == str(tmp_path / "nope.coffee")
    assert "File not found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_top_level_with_known_extension_is_not_retried(make_context, tmp_path):
    ctx = make_context()
    with pytest.raises(SourceNotFoundError) as exc_info:
        await discover(ctx, tmp_path / "gone.less")
    assert exc_info.value.path == str(tmp_path / "gone.less")


@pytest.mark.asyncio
async def test_missing_nested_path_dropped_silently(make_context, tmp_path):
    """A stale listing entry deleted before stat is not an error."""
    ctx = make_context()
    stale = str(tmp_path / "vanished.coffee")
    ctx.registry.register_path(stale)

    await ctx.walker.walk(stale, top_level=False, base=str(tmp_path))

    assert stale not in ctx.registry


@pytest.mark.asyncio
async def test_unexpected_filesystem_error_propagates(make_context, tree, monkeypatch):
    ctx = make_context()

    real_listdir = os.listdir

    def denied(path):
        if str(path).startswith(str(tree)):
            raise PermissionError(13, "Permission denied", path)
        return real_listdir(path)

    monkeypatch.setattr(os, "listdir", denied)
    with pytest.raises(PermissionError):
        await discover(ctx, tree)


@pytest.mark.asyncio
async def test_file_vanishing_before_read_is_dropped(make_context, coffee, tmp_path, monkeypatch):
    """A file deleted between stat and read leaves no empty slot blocking the join."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.coffee").write_text("a = 1")
    (src / "b.coffee").write_text("b = 1")
    vanished = str(src / "a.coffee")
    real_read = walker_module.read_bytes

    def read(path):
        if path == vanished:
            raise FileNotFoundError(path)
        return real_read(path)

    monkeypatch.setattr(walker_module, "read_bytes", read)
    ctx = make_context(join="app.coffee", output_dir=str(tmp_path / "build"))
    await discover(ctx, src)
    await asyncio.sleep(0.3)
    await ctx.drain()

    assert ctx.registry.sources == [str(src / "b.coffee")]
    assert ctx.registry.source_code == [b"b = 1"]
    assert vanished not in ctx.watchers
    assert coffee.calls[-1][0] == b"b = 1"


@pytest.mark.asyncio
async def test_symlink_cycle_walked_once(make_context, backend, tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.coffee").write_text("a = 1")
    os.symlink(src, src / "loop")
    ctx = make_context()

    await discover(ctx, src)

    assert ctx.registry.sources == [str(src / "a.coffee")]
    assert str(src / "loop") in ctx.registry.non_sources
    assert list(backend.dirs) == [str(src)]
    assert sorted(ctx.watchers) == [str(src), str(src / "a.coffee")]


@pytest.mark.asyncio
async def test_directory_named_twice_walked_once(make_context, backend, tree):
    ctx = make_context()
    ctx.registry.register_path(str(tree))
    ctx.registry.register_path(str(tree) + "/.")

    await asyncio.gather(
        ctx.walker.walk(str(tree), top_level=True, base=str(tree)),
        ctx.walker.walk(str(tree) + "/.", top_level=True, base=str(tree) + "/."),
    )

    assert len(ctx.registry.sources) == 3
    assert len(set(ctx.registry.sources)) == 3
