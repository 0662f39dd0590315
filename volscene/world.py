"""The world: game state, entities, lights, materials, camera and terrain."""

from __future__ import annotations

import math
import os
from enum import Enum
from typing import Optional, Type, TypeVar, Union

import numpy as np
from PIL import Image

from volscene.camera import Camera, CameraAttr
from volscene.lights import Light, LightType, make_light
from volscene.materials import Material
from volscene.mesh import Mesh, ShadeMode
from volscene.terrain import generate_terrain as _generate_terrain

PathLike = Union[str, "os.PathLike[str]"]
EntityT = TypeVar("EntityT", bound="Entity")


class WorldShutDownReason(Enum):
    FINAL = "final"
    RESET = "reset"


class Entity:
    """Something in the world that owns a mesh."""

    def __init__(self) -> None:
        self.name = "Entity"
        self.mesh: Optional[Mesh] = Mesh()
        self.alive = False
        self.lifetime = 0.0

    def init(self) -> None:
        """Mark the entity as live; called once right after it is spawned."""
        self.alive = True
        self.lifetime = 0.0

    def destroy(self) -> None:
        """Release the entity's mesh."""
        if self.mesh is not None:
            self.mesh.destroy()
            self.mesh = None
        self.alive = False

    def update(self, delta_time: float) -> None:
        """Advance the entity's lifetime by the elapsed milliseconds."""
        self.lifetime += delta_time


class GameState:
    """A scene's logic; subclasses override the hooks they need."""

    def __init__(self) -> None:
        self.world: Optional[World] = None
        self.elapsed = 0.0
        self.fixed_elapsed = 0.0

    def start_up(self, world: World) -> None:
        """Attach the state to the world that runs it."""
        self.world = world
        self.elapsed = 0.0
        self.fixed_elapsed = 0.0

    def shut_down(self) -> None:
        """Detach the state from its world."""
        self.world = None

    def update(self, delta_time: float) -> None:
        """Accumulate the time spent in this state."""
        self.elapsed += delta_time

    def fixed_update(self, fixed_delta_time: float) -> None:
        """Accumulate the time covered by fixed steps."""
        self.fixed_elapsed += fixed_delta_time


class World:
    """Holds everything that a scene consists of."""

    def __init__(self, screen_width: int = 800, screen_height: int = 600) -> None:
        self.screen_width = screen_width
        self.screen_height = screen_height

        self.environment_2d_movement_effect_angle = 0.0
        self.environment_2d_movement_effect_speed = 0.00175

        self.game_state: Optional[GameState] = None
        self.next_game_state: Optional[GameState] = None

        self.entities: list[Entity] = []
        self.materials: list[Material] = []
        self.lights: list[Light] = []
        self.shadow_making_light: Optional[Light] = None

        self.environment_2d: Optional[np.ndarray] = None
        self.camera: Optional[Camera] = None
        self.terrain_mesh: Optional[Mesh] = None
        self.y_shadow_position = -25.0

    def start_up(self, game_state: Union[GameState, Type[GameState], None] = None) -> None:
        """Reset the world and start a game state (an instance or a class)."""
        if game_state is None:
            game_state = GameState()
        elif isinstance(game_state, type):
            game_state = game_state()

        self.environment_2d_movement_effect_angle = 0.0
        self.environment_2d_movement_effect_speed = 0.00175

        self.entities = []
        self.materials = []
        self.lights = []
        self.shadow_making_light = None

        self.camera = Camera(
            CameraAttr.EULER,
            (0.0, 1000.0, 1500.0),
            (0.0, 0.0, 0.0),
            None,
            80.0,
            100.0,
            1000000.0,
            self.screen_width,
            self.screen_height,
        )
        self.terrain_mesh = Mesh()

        self.game_state = game_state
        game_state.start_up(self)
        self.next_game_state = None

    def shut_down(self, reason: WorldShutDownReason = WorldShutDownReason.FINAL) -> None:
        """Shut the game state down and release entities, materials and terrain."""
        if self.game_state is not None:
            self.game_state.shut_down()
            self.game_state = None

        if reason is WorldShutDownReason.FINAL:
            self.next_game_state = None
            self.camera = None

        if self.terrain_mesh is not None:
            self.terrain_mesh.destroy()
            self.terrain_mesh = None

        self.environment_2d = None

        for entity in self.entities:
            entity.destroy()
        self.entities = []

        for material in self.materials:
            material.destroy()
        self.materials = []

    def _require_state(self) -> GameState:
        if self.game_state is None:
            raise RuntimeError("the world has not been started")
        return self.game_state

    def update(self, delta_time: float) -> None:
        """Switch to a pending state, then update the state, entities and camera."""
        if self.next_game_state is not None:
            next_state = self.next_game_state
            self.shut_down(WorldShutDownReason.RESET)
            self.start_up(next_state)

        self._require_state().update(delta_time)

        for entity in list(self.entities):
            entity.update(delta_time)

        if self.camera is not None:
            self.camera.update(delta_time)

    def fixed_update(self, fixed_delta_time: float) -> None:
        """Run the state's fixed step and advance the environment movement angle."""
        self._require_state().fixed_update(fixed_delta_time)

        angle = math.fmod(
            self.environment_2d_movement_effect_angle
            + self.environment_2d_movement_effect_speed * fixed_delta_time,
            360.0,
        )
        if angle < 0.0:
            angle += 360.0
        self.environment_2d_movement_effect_angle = angle

    def spawn_entity(self, entity_type: Type[EntityT] = Entity) -> EntityT:  # type: ignore[assignment]
        entity = entity_type()
        self.entities.append(entity)
        entity.init()
        return entity

    def destroy_entity(self, entity: Optional[Entity]) -> None:
        if entity is None:
            return
        if entity in self.entities:
            self.entities.remove(entity)
        entity.destroy()

    def spawn_light(self, light_type: LightType) -> Light:
        light = make_light(light_type)
        self.lights.append(light)
        return light

    def add_material(self) -> Material:
        material = Material()
        self.materials.append(material)
        return material

    def generate_terrain(
        self,
        height_map: PathLike,
        texture: str,
        size: float = 15000.0,
        height: float = 1000.0,
        shade_mode: ShadeMode = ShadeMode.GOURAUD,
    ) -> Mesh:
        """Replace the terrain with one built from a height map image."""
        mesh = _generate_terrain(height_map, texture, size, height, shade_mode)
        if self.terrain_mesh is not None:
            self.terrain_mesh.destroy()
        self.terrain_mesh = mesh

        known = {id(m) for m in self.materials}
        for poly in mesh.polys:
            if poly.material is not None and id(poly.material) not in known:
                known.add(id(poly.material))
                self.materials.append(poly.material)
        return mesh

    def set_environment_2d(self, path: PathLike) -> None:
        """Load the background image as an RGBA pixel array."""
        with Image.open(os.fspath(path)) as image:
            self.environment_2d = np.asarray(image.convert("RGBA"))

    def change_state(self, state_type: Type[GameState]) -> None:
        """Schedule a switch to a new game state on the next update."""
        self.next_game_state = state_type()