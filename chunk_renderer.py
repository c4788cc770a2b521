"""
OpenGL Chunk Renderer
Scene sink for the chunk manager: compiles attached chunks into display lists
and draws land first, then the translucent sea plane.
"""

import logging

import numpy as np
from OpenGL.GL import *

logger = logging.getLogger(__name__)


def triangle_mesh(chunk):
    """Split a chunk's vertex grid into triangles.

    Returns (positions, colors, normals) shaped (T, 3, 3), (T, 3, 3) and (T, 3)
    with positions still in chunk-local space.
    """
    side = chunk.segments + 1
    vertices = chunk.vertices.reshape(side, side, 3)
    colors = chunk.colors.reshape(side, side, 3)

    # Corner indices of every grid cell
    v1, v2 = vertices[:-1, :-1], vertices[:-1, 1:]
    v3, v4 = vertices[1:, :-1], vertices[1:, 1:]
    c1, c2 = colors[:-1, :-1], colors[:-1, 1:]
    c3, c4 = colors[1:, :-1], colors[1:, 1:]

    first = np.stack([v1, v3, v2], axis=-2).reshape(-1, 3, 3)
    second = np.stack([v2, v3, v4], axis=-2).reshape(-1, 3, 3)
    positions = np.concatenate([first, second])
    tri_colors = np.concatenate([
        np.stack([c1, c3, c2], axis=-2).reshape(-1, 3, 3),
        np.stack([c2, c3, c4], axis=-2).reshape(-1, 3, 3),
    ])

    # Face normals, pointing up for a flat plane
    normals = np.cross(positions[:, 1] - positions[:, 0], positions[:, 2] - positions[:, 0])
    lengths = np.linalg.norm(normals, axis=1)
    flat = lengths == 0
    lengths[flat] = 1.0
    normals = normals / lengths[:, None]
    normals[flat] = (0.0, 1.0, 0.0)
    return positions, tri_colors, normals


class ChunkRenderer:
    """Draws the chunks handed to it by the chunk manager."""

    def __init__(self):
        self.display_lists = {}  # id(chunk) -> display list, None until compiled
        self.chunks = {}

    def attach(self, chunk):
        # Compilation waits for draw() so chunks can arrive before the GL context
        self.chunks[id(chunk)] = chunk
        self.display_lists[id(chunk)] = None

    def detach(self, chunk):
        key = id(chunk)
        if key not in self.chunks:
            return
        display_list = self.display_lists.pop(key)
        del self.chunks[key]
        if display_list is not None:
            glDeleteLists(display_list, 1)

    def compile_display_list(self, chunk):
        """Compile a chunk's mesh into an OpenGL display list."""
        positions, colors, normals = triangle_mesh(chunk)
        alpha = chunk.opacity

        display_list = glGenLists(1)
        glNewList(display_list, GL_COMPILE)
        glBegin(GL_TRIANGLES)
        for triangle, tri_colors, normal in zip(positions, colors, normals):
            glNormal3f(*normal)
            for vertex, color in zip(triangle, tri_colors):
                glColor4f(color[0], color[1], color[2], alpha)
                glVertex3f(*vertex)
        glEnd()
        glEndList()

        logger.debug("Compiled %s chunk at %s (%d triangles)", chunk.kind, chunk.offset, len(positions))
        return display_list

    def _draw_chunk(self, chunk):
        key = id(chunk)
        if self.display_lists[key] is None:
            self.display_lists[key] = self.compile_display_list(chunk)

        glPushMatrix()
        glTranslatef(*chunk.position)
        glCallList(self.display_lists[key])
        glPopMatrix()

    def draw(self, wireframe=False):
        """Draw opaque chunks, then transparent ones with depth writes off."""
        opaque = [c for c in self.chunks.values() if not c.is_transparent]
        transparent = [c for c in self.chunks.values() if c.is_transparent]

        if wireframe:
            glPolygonMode(GL_FRONT_AND_BACK, GL_LINE)
        for chunk in opaque:
            self._draw_chunk(chunk)
        if wireframe:
            glPolygonMode(GL_FRONT_AND_BACK, GL_FILL)

        if not transparent:
            return

        # Save current OpenGL state
        blend_enabled = glIsEnabled(GL_BLEND)
        depth_mask = glGetBooleanv(GL_DEPTH_WRITEMASK)

        glEnable(GL_BLEND)
        glBlendFunc(GL_SRC_ALPHA, GL_ONE_MINUS_SRC_ALPHA)
        glDepthMask(GL_FALSE)
        for chunk in transparent:
            self._draw_chunk(chunk)

        # Restore OpenGL state
        if not blend_enabled:
            glDisable(GL_BLEND)
        glDepthMask(depth_mask)

    def cleanup(self):
        """Free OpenGL resources."""
        for display_list in self.display_lists.values():
            if display_list is not None:
                glDeleteLists(display_list, 1)
        self.display_lists.clear()
        self.chunks.clear()
