"""
Keyboard Parameter Panel
Maps key presses to terrain parameter edits. Every edit is forwarded to
exactly one chunk manager operation; rejected edits leave the terrain as is.
"""

import logging
import random
from dataclasses import replace

from pygame.locals import *

from config import ConfigurationError, SeaParameters

logger = logging.getLogger(__name__)

# key: (noise field, step, lowest, highest); ranges follow the original GUI sliders
NOISE_BINDINGS = {
    K_o: ("octaves", -1, 1, 10),
    K_p: ("octaves", 1, 1, 10),
    K_1: ("persistence", -0.05, 0.0, 1.0),
    K_2: ("persistence", 0.05, 0.0, 1.0),
    K_3: ("lacunarity", -0.1, 1.0, 5.0),
    K_4: ("lacunarity", 0.1, 1.0, 5.0),
    K_5: ("exponentiation", -1.0, 1.0, 10.0),
    K_6: ("exponentiation", 1.0, 1.0, 10.0),
    K_7: ("height", -25.0, 1.0, 1000.0),
    K_8: ("height", 25.0, 1.0, 1000.0),
    K_9: ("scale", -25.0, 1.0, 1000.0),
    K_0: ("scale", 25.0, 1.0, 1000.0),
}

SEA_LEVEL_STEP = 5.0
SEA_OPACITY_STEP = 0.05
SEA_COLORS = (0x00DDFF, 0x1E6091, 0x2A9D8F, 0x5D98F0)


class ParameterPanel:
    """Keyboard bindings that feed parameter edits into the chunk manager."""

    def __init__(self, manager, noise_params, sea_level, n, sea_params=None):
        self.manager = manager
        self.noise_params = noise_params
        self.sea_params = sea_params or SeaParameters()
        self.sea_level = sea_level
        self.n = n
        self.wireframe = False
        self.grid_locked = False

    def _set_noise(self, **changes):
        params = self.noise_params.with_changes(**changes)
        try:
            self.manager.update_noise_generator(params)
        except ConfigurationError as e:
            logger.warning("Rejected noise parameters: %s", e)
            return False
        self.noise_params = params
        logger.info("Noise parameters: %s", params)
        return True

    def _step_noise(self, name, step, lowest, highest):
        current = getattr(self.noise_params, name)
        value = min(highest, max(lowest, current + step))
        if isinstance(current, int):
            value = int(value)
        else:
            value = round(value, 6)
        if value == current:
            return False
        return self._set_noise(**{name: value})

    def _set_sea(self, **changes):
        try:
            params = replace(self.sea_params, **changes)
        except ConfigurationError as e:
            logger.warning("Rejected sea parameters: %s", e)
            return False
        self.manager.update_sea_parameters(params)
        self.sea_params = params
        return True

    def _set_grid(self, n):
        if self.grid_locked:
            logger.info("Grid size is fixed while showing the quadtree surface")
            return
        if self.manager.regenerate_chunks(n):
            self.n = self.manager.n

    def handle_key(self, key):
        if key in NOISE_BINDINGS:
            self._step_noise(*NOISE_BINDINGS[key])
        elif key == K_LEFTBRACKET:
            self._set_grid(self.n - 2)
        elif key == K_RIGHTBRACKET:
            self._set_grid(self.n + 2)
        elif key == K_MINUS:
            self.sea_level -= SEA_LEVEL_STEP
            self.manager.change_sea_level(self.sea_level)
        elif key == K_EQUALS:
            self.sea_level += SEA_LEVEL_STEP
            self.manager.change_sea_level(self.sea_level)
        elif key == K_k:
            self._set_sea(opacity=round(max(0.0, self.sea_params.opacity - SEA_OPACITY_STEP), 6))
        elif key == K_l:
            self._set_sea(opacity=round(min(1.0, self.sea_params.opacity + SEA_OPACITY_STEP), 6))
        elif key == K_c:
            index = SEA_COLORS.index(self.sea_params.color) if self.sea_params.color in SEA_COLORS else -1
            self._set_sea(color=SEA_COLORS[(index + 1) % len(SEA_COLORS)])
        elif key == K_n:
            noise_type = "perlin" if self.noise_params.noise_type == "simplex" else "simplex"
            self._set_noise(noise_type=noise_type)
        elif key == K_r:
            self._set_noise(seed=random.randint(0, 2 ** 31 - 1))
        elif key == K_f:
            self.wireframe = not self.wireframe
        else:
            return False
        return True
