"""Tests for chunk generation, reconciliation and sea plane handling."""
from __future__ import annotations

import math

import numpy as np
import pytest

from config import ChunkParameters, ConfigurationError, SeaParameters, TerrainConfig
from quadtree import QuadTree
from terrain import (
    BEACH_COLOR,
    GRASS_COLOR,
    LAND,
    MOUNTAIN_COLOR,
    SEA,
    SNOW_COLOR,
    ChunkManager,
    RecordingScene,
    band_colors,
    hex_to_rgb,
    plane_vertices,
    round_to_odd,
)


def _manager(config: TerrainConfig) -> tuple[ChunkManager, RecordingScene]:
    scene = RecordingScene()
    manager = ChunkManager(scene)
    manager.initialize(config)
    return manager, scene


def _offsets(manager: ChunkManager) -> set:
    return {chunk.offset for chunk in manager.chunks}


def test_initialize_builds_centred_grid_and_sea(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    expected = {(col * 100.0, row * 100.0) for row in range(-2, 3) for col in range(-2, 3)}
    assert _offsets(manager) == expected
    assert manager.sea_chunk.kind == SEA
    assert manager.sea_chunk.size == 500.0
    assert len(scene.attached) == 26
    assert manager.sea_chunk in scene


def test_even_grid_request_is_rounded_up(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config.with_changes(n=4))
    assert manager.n == 5
    assert len(manager.chunks) == 25


def test_grid_follows_reference_point(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config.with_changes(n=3, reference_point=(1000.0, -500.0)))
    assert (1000.0, -500.0) in _offsets(manager)
    assert (900.0, -600.0) in _offsets(manager)
    assert manager.sea_chunk.offset == (1000.0, -500.0)


def test_chunk_vertices_are_displaced_by_noise(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    chunk = manager.find_chunk_at_position(100.0, -200.0)
    assert chunk.vertex_count == 25
    for vx, vy, vz in chunk.vertices:
        assert vy == manager.generator.sample(float(vx) + 100.0, float(vz) - 200.0)
    assert chunk.position == (100.0, -10.0, -200.0)
    assert chunk.kind == LAND and chunk.casts_shadow


def test_chunk_colors_follow_height_bands(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    for chunk in manager.chunks:
        assert np.array_equal(chunk.colors, band_colors(chunk.vertices[:, 1]))


def test_band_table_edges() -> None:
    colors = band_colors([0.0, 14.9, 15.0, 45.0, 45.1, 85.0, 85.1, 400.0])
    expected = [BEACH_COLOR, BEACH_COLOR, GRASS_COLOR, GRASS_COLOR,
                MOUNTAIN_COLOR, MOUNTAIN_COLOR, SNOW_COLOR, SNOW_COLOR]
    assert [tuple(c) for c in colors] == [hex_to_rgb(c) for c in expected]


def test_generate_chunk_never_duplicates(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    attached = len(scene.attached)
    assert manager.generate_chunk(0.0, 0.0) is None
    assert manager.generate_chunk(200.0, 200.0) is None
    new = manager.generate_chunk(300.0, 0.0)
    assert new is not None
    assert manager.generate_chunk(300.0, 0.0) is None
    assert len(scene.attached) == attached + 1
    offsets = [chunk.offset for chunk in manager.chunks]
    assert len(offsets) == len(set(offsets))


def test_shrinking_prunes_only_outer_ring(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    inner = {chunk.offset: chunk for chunk in manager.chunks
             if abs(chunk.offset[0]) <= 100.0 and abs(chunk.offset[1]) <= 100.0}
    snapshots = {offset: chunk.vertices.copy() for offset, chunk in inner.items()}
    outer = [chunk for chunk in manager.chunks if chunk.offset not in inner]

    assert manager.regenerate_chunks(3) is True

    assert manager.n == 3
    assert _offsets(manager) == set(inner)
    for offset, chunk in inner.items():
        assert manager.find_chunk_at_position(*offset) is chunk
        assert np.array_equal(chunk.vertices, snapshots[offset])
    for chunk in outer:
        assert chunk not in scene


def test_shrink_then_grow_restores_grid(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    initial = _offsets(manager)
    manager.regenerate_chunks(3)
    manager.regenerate_chunks(5)
    assert _offsets(manager) == initial
    assert len(manager.chunks) == 25


def test_growing_keeps_existing_chunks(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config.with_changes(n=3))
    before = {chunk.offset: chunk for chunk in manager.chunks}
    assert manager.regenerate_chunks(6) is True
    assert manager.n == 7
    assert len(manager.chunks) == 49
    for offset, chunk in before.items():
        assert manager.find_chunk_at_position(*offset) is chunk


def test_prune_is_relative_to_reference_point(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config.with_changes(reference_point=(1000.0, -500.0)))
    manager.regenerate_chunks(3)
    assert len(manager.chunks) == 9
    assert all(abs(x - 1000.0) <= 100.0 and abs(z + 500.0) <= 100.0 for x, z in _offsets(manager))


def test_resize_replaces_sea_chunk(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    old_sea = manager.sea_chunk
    manager.regenerate_chunks(3)
    assert manager.sea_chunk is not old_sea
    assert manager.sea_chunk.size == 300.0
    assert old_sea not in scene
    assert manager.sea_chunk in scene


def test_same_size_is_a_no_op(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    events = len(scene.events)
    sea = manager.sea_chunk
    assert manager.regenerate_chunks(5) is False
    assert manager.regenerate_chunks(4) is False
    assert manager.sea_chunk is sea
    assert len(scene.events) == events


@pytest.mark.parametrize("n", [0, -3])
def test_non_positive_grid_size_is_rejected(small_config: TerrainConfig, n: int) -> None:
    manager, _ = _manager(small_config)
    assert manager.regenerate_chunks(n) is False
    assert manager.n == 5
    assert len(manager.chunks) == 25


def test_sea_level_change_moves_chunks_only_vertically(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    before = {chunk.offset: (chunk.position, chunk.vertices, chunk.vertices.copy(), chunk.colors.copy())
              for chunk in manager.chunks}
    old_sea = manager.sea_chunk

    manager.change_sea_level(50.0)

    for chunk in manager.chunks:
        position, vertices, snapshot, colors = before[chunk.offset]
        assert chunk.position[1] - position[1] == pytest.approx(-40.0)
        assert chunk.position[0] == position[0] and chunk.position[2] == position[2]
        assert chunk.vertices is vertices
        assert np.array_equal(chunk.vertices, snapshot)
        assert np.array_equal(chunk.colors, colors)
    assert manager.sea_chunk is not old_sea
    assert old_sea not in scene


def test_new_chunks_use_current_sea_level(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    manager.change_sea_level(25.0)
    chunk = manager.generate_chunk(500.0, 500.0)
    assert chunk.position[1] == -25.0


def test_sea_parameters_swap_sea_chunk(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    old_sea = manager.sea_chunk
    manager.update_sea_parameters(SeaParameters(color=0x112233, opacity=0.8))
    sea = manager.sea_chunk
    assert sea is not old_sea
    assert old_sea not in scene
    assert sea.opacity == 0.8 and sea.is_transparent
    assert not sea.casts_shadow
    assert np.allclose(sea.colors, hex_to_rgb(0x112233))
    assert np.all(sea.vertices[:, 1] == 0.0)


def test_noise_update_redisplaces_every_chunk(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    chunks = {chunk.offset: chunk for chunk in manager.chunks}
    before = {offset: chunk.vertices[:, 1].copy() for offset, chunk in chunks.items()}

    manager.update_noise_generator(small_config.noise.with_changes(seed=8, noise_type="perlin"))

    changed = 0
    for offset, chunk in chunks.items():
        assert manager.find_chunk_at_position(*offset) is chunk
        x_offset, z_offset = offset
        for vx, vy, vz in chunk.vertices[::7]:
            assert vy == manager.generator.sample(float(vx) + x_offset, float(vz) + z_offset)
        assert np.array_equal(chunk.colors, band_colors(chunk.vertices[:, 1]))
        changed += not np.array_equal(before[offset], chunk.vertices[:, 1])
    assert changed > 0


def test_bad_noise_parameters_leave_terrain_untouched(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    generator = manager.generator
    snapshot = {chunk.offset: chunk.vertices.copy() for chunk in manager.chunks}
    with pytest.raises(ConfigurationError):
        manager.update_noise_generator(small_config.noise.with_changes(noise_type="worley"))
    assert manager.generator is generator
    for chunk in manager.chunks:
        assert np.array_equal(chunk.vertices, snapshot[chunk.offset])


def test_bad_noise_parameters_fail_initialize() -> None:
    scene = RecordingScene()
    manager = ChunkManager(scene)
    config = TerrainConfig(noise=TerrainConfig().noise.with_changes(octaves=0))
    with pytest.raises(ConfigurationError):
        manager.initialize(config)
    assert scene.attached == []


def test_update_is_idempotent(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    events = list(scene.events)
    for _ in range(3):
        assert manager.update() is None
    assert scene.events == events


def test_quadtree_leaves_become_chunks(small_config: TerrainConfig) -> None:
    scene = RecordingScene()
    manager = ChunkManager(scene)
    manager.initialize(small_config.with_changes(n=1), build_grid=False)
    assert manager.chunks == []

    tree = QuadTree((-100.0, -100.0), (100.0, 100.0), 60.0)
    tree.insert_point_of_interest((0.0, 0.0))
    created = manager.generate_quadtree_chunks(tree, max_segments=8)

    assert len(created) == 16
    assert {chunk.offset for chunk in created} == {leaf.centre for leaf in tree.leaves()}
    segments = math.ceil(8 / (50.0 / 60.0))
    assert all(chunk.size == 50.0 and chunk.segments == segments for chunk in created)
    assert manager.generate_quadtree_chunks(tree, max_segments=8) == []


def test_chunk_bounds(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    chunk = manager.find_chunk_at_position(200.0, -100.0)
    assert chunk.bounds == ((150.0, -150.0), (250.0, -50.0))


def test_plane_vertices_layout() -> None:
    vertices = plane_vertices(10.0, 2)
    assert vertices.shape == (9, 3)
    assert tuple(vertices[0]) == (-5.0, 0.0, -5.0)
    assert tuple(vertices[1]) == (0.0, 0.0, -5.0)
    assert tuple(vertices[3]) == (-5.0, 0.0, 0.0)
    assert tuple(vertices[-1]) == (5.0, 0.0, 5.0)


def test_round_to_odd() -> None:
    assert round_to_odd(4) == 5
    assert round_to_odd(5) == 5
    assert round_to_odd(4, "down") == 3
    with pytest.raises(ValueError):
        round_to_odd(4, "sideways")


def test_detaching_unknown_chunk_is_tolerated(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    chunk = manager.chunks[0]
    scene.detach(chunk)
    events = len(scene.events)
    scene.detach(chunk)
    assert len(scene.events) == events


def test_per_call_chunk_parameters(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config)
    chunk = manager.generate_chunk(1000.0, 1000.0, ChunkParameters(size=40.0, segments=2))
    assert chunk.size == 40.0 and chunk.vertex_count == 9


def test_reinitialize_replaces_previous_terrain(small_config: TerrainConfig) -> None:
    manager, scene = _manager(small_config)
    old_chunks = manager.chunks
    old_sea = manager.sea_chunk

    manager.initialize(small_config.with_changes(n=3, chunk=ChunkParameters(size=40.0, segments=2)))

    assert len(manager.chunks) == 9
    assert all(chunk.size == 40.0 for chunk in manager.chunks)
    assert all(chunk not in scene for chunk in old_chunks)
    assert old_sea not in scene
    assert len(scene.attached) == 10


def test_generate_grid_holds_the_manager_lock(small_config: TerrainConfig) -> None:
    manager, _ = _manager(small_config.with_changes(n=1))
    seen = []

    class RecordingLock:
        def __enter__(self):
            seen.append("enter")
            return self

        def __exit__(self, *exc):
            seen.append("exit")
            return False

    lock = manager._lock
    manager._lock = RecordingLock()
    try:
        manager.n = 3
        manager.generate_grid()
    finally:
        manager._lock = lock
    assert seen[0] == "enter" and seen[-1] == "exit"
    assert len(manager.chunks) == 9
