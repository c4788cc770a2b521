"""
Terrain Viewer
pygame/OpenGL window around the chunk manager. Owns the frame loop, a simple
orbit-less camera and a keyboard parameter panel that forwards each edit to
exactly one chunk manager operation.
"""

import argparse
import logging
import math
import sys

import pygame
from pygame.locals import *
from OpenGL.GL import *
from OpenGL.GLU import *

from chunk_renderer import ChunkRenderer
from config import ConfigurationError, TerrainConfig, load_config
from logging_setup import setup_logging
from panel import ParameterPanel
from quadtree import QuadTree
from terrain import ChunkManager

logger = logging.getLogger(__name__)

QUADTREE_HALF_SIZE = 32000.0
QUADTREE_MIN_NODE_SIZE = 250.0
MAX_LEAF_SEGMENTS = 64

PAN_SPEED = 600.0  # world units per second
SKY_COLOR = (0x5D / 255.0, 0x98 / 255.0, 0xF0 / 255.0, 1.0)


class Camera:
    """Looks down at the terrain from a fixed height and pitch."""

    def __init__(self, x=0.0, z=0.0, height=1200.0, distance=1600.0):
        self.x = x
        self.z = z
        self.height = height
        self.distance = distance

    def pan(self, dx, dz):
        self.x += dx
        self.z += dz

    def apply(self):
        glLoadIdentity()
        gluLookAt(self.x, self.height, self.z + self.distance,
                  self.x, 0.0, self.z,
                  0.0, 1.0, 0.0)

    @property
    def position(self):
        return self.x, self.height, self.z


def setup_gl(display):
    """Projection, depth test and a single directional light."""
    glMatrixMode(GL_PROJECTION)
    glLoadIdentity()
    gluPerspective(90, display[0] / display[1], 1.0, 10000.0)
    glMatrixMode(GL_MODELVIEW)
    glEnable(GL_DEPTH_TEST)
    glClearColor(*SKY_COLOR)

    glEnable(GL_LIGHTING)
    glEnable(GL_LIGHT0)
    glLightfv(GL_LIGHT0, GL_AMBIENT, (0.35, 0.35, 0.35, 1.0))
    glLightfv(GL_LIGHT0, GL_DIFFUSE, (1.0, 1.0, 1.0, 1.0))
    glEnable(GL_COLOR_MATERIAL)
    glColorMaterial(GL_FRONT_AND_BACK, GL_AMBIENT_AND_DIFFUSE)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Procedural chunked terrain viewer")
    parser.add_argument("--config", help="JSON terrain configuration file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", help="also write logs to this file")
    parser.add_argument("--quadtree", action="store_true",
                        help="build a quadtree LOD surface around the camera instead of the uniform grid")
    parser.add_argument("--wireframe", action="store_true")
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    return parser.parse_args(argv)


def main(argv=None):
    """Main function for the terrain viewer."""
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        config = load_config(args.config) if args.config else TerrainConfig()
    except (OSError, ConfigurationError) as e:
        logger.error("Could not load configuration: %s", e)
        return 1

    pygame.init()
    display = (args.width, args.height)
    try:
        pygame.display.set_mode(display, DOUBLEBUF | OPENGL)
        pygame.display.set_caption("Terrain Viewer")
    except pygame.error as e:
        logger.error("Error setting up display: %s", e)
        return 1
    setup_gl(display)

    renderer = ChunkRenderer()
    manager = ChunkManager(renderer)
    camera = Camera(*config.reference_point)

    if args.quadtree:
        # Land comes from the tree; the grid only sizes the sea to cover it
        n = math.ceil(2 * QUADTREE_HALF_SIZE / config.chunk.size)
        manager.initialize(config.with_changes(n=n), build_grid=False)
        tree = QuadTree((-QUADTREE_HALF_SIZE, -QUADTREE_HALF_SIZE),
                        (QUADTREE_HALF_SIZE, QUADTREE_HALF_SIZE),
                        QUADTREE_MIN_NODE_SIZE)
        tree.insert_point_of_interest((camera.x, camera.z))
        manager.generate_quadtree_chunks(tree, MAX_LEAF_SEGMENTS)
    else:
        manager.initialize(config)

    panel = ParameterPanel(manager, config.noise, config.sea_level, manager.n, config.sea)
    panel.wireframe = args.wireframe
    panel.grid_locked = args.quadtree
    clock = pygame.time.Clock()
    running = True

    while running:
        dt = clock.tick(60) / 1000.0

        for event in pygame.event.get():
            if event.type == QUIT:
                running = False
            elif event.type == KEYDOWN:
                if event.key == K_ESCAPE:
                    running = False
                else:
                    panel.handle_key(event.key)

        keys = pygame.key.get_pressed()
        dx = (keys[K_d] or keys[K_RIGHT]) - (keys[K_a] or keys[K_LEFT])
        dz = (keys[K_s] or keys[K_DOWN]) - (keys[K_w] or keys[K_UP])
        if dx or dz:
            step = PAN_SPEED * dt / math.hypot(dx, dz)
            camera.pan(dx * step, dz * step)

        manager.update()

        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)
        camera.apply()
        glLightfv(GL_LIGHT0, GL_POSITION, (-400.0, 200.0, 1600.0, 0.0))
        renderer.draw(panel.wireframe)
        pygame.display.flip()

    renderer.cleanup()
    pygame.quit()
    return 0


if __name__ == "__main__":
    sys.exit(main())
