"""
Chunked Terrain System
Owns the live set of terrain chunks and the sea plane: builds them on a grid
(or at quadtree leaves), displaces them with the noise field, colors them by
height and reconciles the set when the grid size or parameters change.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field

import numpy as np

from config import ChunkParameters, SeaParameters
from noise_field import NoiseField

logger = logging.getLogger(__name__)


# Height bands (world units above the chunk base) and their vertex colors
BEACH_MAX = 15.0
GRASS_MAX = 45.0
MOUNTAIN_MAX = 85.0

BEACH_COLOR = 0xC2B280
GRASS_COLOR = 0x567D46
MOUNTAIN_COLOR = 0x808080
SNOW_COLOR = 0xFFFFFF

LAND = "land"
SEA = "sea"


def hex_to_rgb(value):
    """0xRRGGBB -> (r, g, b) floats in [0, 1]."""
    return ((value >> 16) & 0xFF) / 255.0, ((value >> 8) & 0xFF) / 255.0, (value & 0xFF) / 255.0


def round_to_odd(value, direction="up"):
    """Round an even number to an odd number, rounds up by default."""
    if value % 2 != 0:
        return value
    if direction == "up":
        return value + 1
    if direction == "down":
        return value - 1
    raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")


def plane_vertices(size, segments):
    """Flat (segments + 1)^2 vertex grid centred on the origin, rows ordered by z then x."""
    steps = np.linspace(-size / 2.0, size / 2.0, segments + 1)
    xs, zs = np.meshgrid(steps, steps)
    vertices = np.zeros((xs.size, 3), dtype=np.float64)
    vertices[:, 0] = xs.ravel()
    vertices[:, 2] = zs.ravel()
    return vertices


def band_colors(heights):
    """Vertex colors for an array of heights using the fixed band table."""
    heights = np.asarray(heights)
    band = np.select(
        [heights < BEACH_MAX, heights > MOUNTAIN_MAX, heights > GRASS_MAX],
        [0, 3, 2],
        default=1,
    )
    palette = np.array([hex_to_rgb(c) for c in (BEACH_COLOR, GRASS_COLOR, MOUNTAIN_COLOR, SNOW_COLOR)])
    return palette[band]


@dataclass(eq=False)
class Chunk:
    """A rectangular terrain patch. Plain data; the renderer only reads it."""
    offset: tuple
    size: float
    segments: int
    vertices: np.ndarray
    colors: np.ndarray
    position: tuple = (0.0, 0.0, 0.0)
    kind: str = LAND
    opacity: float = 1.0

    @property
    def bounds(self):
        """(min, max) corners of the patch in world x/z."""
        half = self.size / 2.0
        x, z = self.offset
        return (x - half, z - half), (x + half, z + half)

    @property
    def is_transparent(self):
        return self.opacity < 1.0

    @property
    def casts_shadow(self):
        return self.kind == LAND and not self.is_transparent

    @property
    def vertex_count(self):
        return len(self.vertices)


@dataclass
class RecordingScene:
    """In-memory scene sink: keeps attached chunks and an event log.

    Used headless (tests, batch generation) in place of the OpenGL renderer.
    """
    attached: list = field(default_factory=list)
    events: list = field(default_factory=list)

    def attach(self, chunk):
        self.attached.append(chunk)
        self.events.append(("attach", chunk))

    def detach(self, chunk):
        # Detaching something that is not attached is tolerated
        for i, existing in enumerate(self.attached):
            if existing is chunk:
                del self.attached[i]
                self.events.append(("detach", chunk))
                return

    def __contains__(self, chunk):
        return any(existing is chunk for existing in self.attached)


class ChunkManager:
    """Manages the chunk grid, the sea chunk and the active noise field.

    Args:
        scene: object with ``attach(chunk)`` and ``detach(chunk)``; receives
            every chunk the manager creates or removes.
    """

    def __init__(self, scene):
        self.scene = scene
        self.n = 0
        self.chunk_params = ChunkParameters()
        self.sea_params = SeaParameters()
        self.sea_level = 0.0
        self.reference_point = (0.0, 0.0)
        self.generator = None
        self.sea_chunk = None
        self._chunks = {}
        self._lock = threading.RLock()

    @property
    def chunks(self):
        """Live land chunks in creation order."""
        return list(self._chunks.values())

    @property
    def size(self):
        return self.chunk_params.size

    def initialize(self, config, build_grid=True):
        """Build the initial grid around the reference point and the sea plane.

        With ``build_grid=False`` only the sea plane is created, for callers
        that place land chunks themselves (e.g. from quadtree leaves).
        Calling it again discards every chunk built from the previous config.
        """
        generator = NoiseField(config.noise)
        with self._lock:
            self.clear()
            self.n = round_to_odd(config.n, "up")
            self.chunk_params = config.chunk
            self.sea_params = config.sea
            self.sea_level = config.sea_level
            self.reference_point = (float(config.reference_point[0]), float(config.reference_point[1]))
            self.generator = generator

            if build_grid:
                self.generate_grid()
            self.generate_sea_chunk()

    def clear(self):
        """Detach and forget every land chunk and the sea chunk."""
        with self._lock:
            for chunk in self._chunks.values():
                self.scene.detach(chunk)
            self._chunks.clear()
            if self.sea_chunk is not None:
                self.scene.detach(self.sea_chunk)
                self.sea_chunk = None

    # Called every frame
    def update(self):
        """Per-frame hook. Generation is synchronous, so nothing is pending here."""
        return None

    def find_chunk_at_position(self, x_offset, z_offset):
        """Chunk stored at exactly this offset, or None."""
        return self._chunks.get((x_offset, z_offset))

    def generate_chunk(self, x_offset, z_offset, chunk_params=None):
        """Create, displace, color and attach a chunk at the given offset.

        Returns None when a chunk already occupies that offset.
        """
        with self._lock:
            key = (x_offset, z_offset)
            if key in self._chunks:
                logger.debug("Chunk at %s already exists, skipping", key)
                return None

            params = chunk_params or self.chunk_params
            chunk = Chunk(
                offset=key,
                size=params.size,
                segments=params.segments,
                vertices=plane_vertices(params.size, params.segments),
                colors=None,
                position=(x_offset, -self.sea_level, z_offset),
                kind=LAND,
                opacity=params.opacity,
            )
            self.modify_vertices_with_noise(chunk)
            self.generate_vertex_colors(chunk)

            self._chunks[key] = chunk
            self.scene.attach(chunk)
            logger.debug("Generated chunk at %s (size %s, %d segments)", key, params.size, params.segments)
            return chunk

    def generate_grid(self):
        """Generate every chunk of the n x n grid centred on the reference point."""
        start = time.perf_counter()
        created = 0

        with self._lock:
            half = self.n // 2
            cx, cz = self.reference_point
            for row in range(-half, half + 1):
                for col in range(-half, half + 1):
                    x_offset = col * self.size + cx
                    z_offset = row * self.size + cz
                    if self.generate_chunk(x_offset, z_offset) is not None:
                        created += 1

        logger.info("Generated %d chunks for %dx%d grid in %.1f ms",
                    created, self.n, self.n, (time.perf_counter() - start) * 1000.0)
        return created

    def generate_quadtree_chunks(self, tree, max_segments=256):
        """One chunk per quadtree leaf; smaller leaves get more segments per unit."""
        start = time.perf_counter()
        created = []
        with self._lock:
            for leaf in tree.leaves():
                leaf_size = leaf.size[0]
                segments = max(1, math.ceil(max_segments / (leaf_size / tree.min_node_size)))
                params = ChunkParameters(size=leaf_size, segments=segments,
                                         opacity=self.chunk_params.opacity)
                chunk = self.generate_chunk(leaf.centre[0], leaf.centre[1], params)
                if chunk is not None:
                    created.append(chunk)

        logger.info("Generated %d quadtree chunks in %.1f ms",
                    len(created), (time.perf_counter() - start) * 1000.0)
        return created

    def generate_sea_chunk(self):
        """Replace the sea chunk with a fresh plane spanning the whole grid."""
        with self._lock:
            if self.sea_chunk is not None:
                self.scene.detach(self.sea_chunk)

            size = self.size * self.n
            segments = self.sea_params.segments
            vertices = plane_vertices(size, segments)
            colors = np.tile(np.array(hex_to_rgb(self.sea_params.color)), (len(vertices), 1))
            cx, cz = self.reference_point

            self.sea_chunk = Chunk(
                offset=(cx, cz),
                size=size,
                segments=segments,
                vertices=vertices,
                colors=colors,
                position=(cx, 0.0, cz),
                kind=SEA,
                opacity=self.sea_params.opacity,
            )
            self.scene.attach(self.sea_chunk)
            return self.sea_chunk

    def generate_vertex_colors(self, chunk):
        """Apply colour to each vertex of a chunk based on its height."""
        chunk.colors = band_colors(chunk.vertices[:, 1])

    def modify_vertices_with_noise(self, chunk):
        """Overwrite each vertex height with the noise value at its world position."""
        x_offset, z_offset = chunk.offset
        vertices = chunk.vertices
        vertices[:, 1] = self.generator.sample_grid(vertices[:, 0] + x_offset, vertices[:, 2] + z_offset)

    def change_sea_level(self, level):
        """Move every land chunk to the new sea level; vertex data is not touched."""
        with self._lock:
            self.sea_level = level
            for chunk in self._chunks.values():
                x, _, z = chunk.position
                chunk.position = (x, -level, z)
            self.generate_sea_chunk()
            logger.info("Sea level set to %s", level)

    def update_sea_parameters(self, sea_params):
        with self._lock:
            self.sea_params = sea_params
            self.generate_sea_chunk()

    def update_noise_generator(self, noise_params):
        """Swap the noise field and redisplace and recolor every live chunk."""
        # Build first so a bad parameter set leaves the current terrain in place
        generator = NoiseField(noise_params)
        start = time.perf_counter()
        with self._lock:
            self.generator = generator
            for chunk in self._chunks.values():
                self.modify_vertices_with_noise(chunk)
                self.generate_vertex_colors(chunk)

        logger.info("Re-applied noise to %d chunks in %.1f ms",
                    len(self._chunks), (time.perf_counter() - start) * 1000.0)

    def regenerate_chunks(self, n):
        """Reconcile the grid with a new side length.

        Shrinking prunes chunks outside the new grid, growing generates only
        the missing ones. Returns True if the grid changed.
        """
        if n <= 0:
            logger.warning("Ignoring grid side length %s, must be positive", n)
            return False

        n = round_to_odd(n, "up")
        with self._lock:
            if n < self.n:
                self.prune_chunks(n)
                self.n = n
                self.generate_sea_chunk()
            elif n > self.n:
                self.n = n
                self.generate_grid()
                self.generate_sea_chunk()
            else:
                return False

        logger.info("Grid resized to %dx%d, %d chunks live", n, n, len(self._chunks))
        return True

    def prune_chunks(self, n):
        """Remove chunks that fall outside an n x n grid around the reference point."""
        prune_offset = self.size * (n // 2)
        # Offsets are float sums; ignore rounding noise at the boundary
        limit = prune_offset + self.size * 1e-9
        cx, cz = self.reference_point
        removed = 0

        with self._lock:
            for key, chunk in list(self._chunks.items()):
                x_offset, z_offset = chunk.offset
                if abs(x_offset - cx) > limit or abs(z_offset - cz) > limit:
                    self.scene.detach(chunk)
                    del self._chunks[key]
                    removed += 1

        logger.debug("Pruned %d chunks outside offset %s", removed, prune_offset)
        return removed
